# csemark

csemark publishes course marks to students. Teachers keep their marks in a
spreadsheet reachable as a CSV link; csemark downloads the sheet, stores one
record per student in MongoDB and lets students look their marks up through
a Telegram bot or a small HTTP API.

The package provides three commands:

| Command           | What it does                                                     |
|-------------------|------------------------------------------------------------------|
| `csemark-tele`    | Runs the Telegram bot for students, teachers and administrators. |
| `csemark-api`     | Serves marks over HTTP.                                          |
| `csemark-fetcher` | Re-imports the marks of every active course, over and over.      |

All three need a reachable MongoDB server; they exit with status 1 when the
server cannot be pinged at start-up. Each can also be started as a module,
for example `python -m csemark.api`.

## Installation

```
pip install .
```

For running the tests:

```
pip install ".[test]"
pytest
```

## Configuration

Settings come from environment variables (`csemark.config.load_config`).
When a `.env` file is present in the working directory it is loaded first,
without overriding variables that are already set; otherwise a warning is
logged and the system environment is used as it is. Logs go to standard
error.

| Variable              | Default         | Meaning                                             |
|-----------------------|-----------------|-----------------------------------------------------|
| `MONGO_HOST`          | `localhost`     | MongoDB host                                        |
| `MONGO_PORT`          | `27017`         | MongoDB port                                        |
| `DB_MARK`             | `mark-cse`      | Database holding one collection of marks per course |
| `DB_SETTINGS`         | `mark-settings` | Database holding users and courses                  |
| `DB_SETTINGS_USERS`   | `users`         | Collection of users                                 |
| `DB_SETTINGS_COURSES` | `courses`       | Collection of courses                               |
| `TOKEN`               | empty           | Telegram bot token                                  |
| `ADMINS`              | `[]`            | JSON list of admin Telegram chat ids, e.g. `[1, 2]` |
| `API_TOKEN`           | empty           | Token that HTTP clients must pass                   |
| `API_PORT`            | `8080`          | Port of the HTTP API                                |

An empty variable counts as unset. `ADMINS` falls back to an empty list when
it is not a JSON list of 64-bit integers.

A course stays active for nine months after its link was last set. Database
operations and downloads time out after 30 seconds.

Example `.env`:

```
MONGO_HOST=localhost
TOKEN=token
API_TOKEN=token
ADMINS=[100000001]
```

## Mark sheet format

The CSV link must point to a sheet whose

1. first row holds *flags*,
2. second row holds column headers,
3. remaining rows hold one student each.

Only columns with a non-empty flag are imported, under their header name.
The column flagged `id` holds the student id; it becomes the record's key
(`_id`) and is stored as `id` as well. Columns with an empty flag are left
out, so private notes can live in the same sheet.

```
id,,x,x
Student,Note,Midterm,Final
2011001,late,7.5,8
2011002,,9,9.5
```

Blank lines are skipped, and every row must have as many fields as the first
one. A sheet needs at least one student row. Re-importing a course first
drops all of its previous marks, then stores the new ones and the course's
record count.

## Telegram bot

```
csemark-tele
```

The bot registers its command menu, then long-polls the Bot API for text
messages.

- `/start` – greets the user with their username and chat id.
- `/mark <course> <student_id>` – shows a student's record as JSON. Sending
  just `<course> <student_id>` as plain text (exactly one space between)
  works too.
- `/load <course> <link>` – sets the CSV link of a course and imports it at
  once. The link must be an absolute URI (or absolute path).
- `/clear <course>` – removes all marks of a course and the course itself.
- `/my` – lists the courses registered under your username, with their
  record counts and the month (`MMYY`) until which they stay active.
- `/teacher <username> [flag]` – admins only: creates or updates a user
  entry with teacher rights granted or revoked. Any flag other than `0`,
  `false`, `f`, `off`, `no` or `n` grants; no flag grants. Messages from
  chats not listed in `ADMINS` are ignored.

`/load`, `/clear` and `/my` are open to users who have a user entry, that is
anyone named in a `/teacher` command. A course may be changed when it does
not exist yet, or by the username or chat id that first registered it.

Course ids start with a letter followed by at least one letter, digit or
dash; student ids are letters and digits; usernames given to `/teacher` are
4 to 32 letters, digits or underscores, starting with a letter. Errors are
sent back to the chat as `Error: ...`.

## HTTP API

```
csemark-api
```

```
GET /mark?course=<course>&student=<student_id>&token=<API_TOKEN>
```

Answers `200` with the student's record as JSON indented by one space, `401`
`{"error": "unauthorized"}` when the token is wrong, and `400`
`{"error": "bad request"}` when a parameter is missing or the record cannot
be read.

The Flask application can also be built directly, for tests or another
server:

```python
from csemark.api import create_app

app = create_app(mark_repo, "token")
```

`mark_repo` is any object with a `get_mark(course_id, student_id)` method,
such as `csemark.mongo_store.MarkRepo`.

## Fetcher

```
csemark-fetcher
```

Each round lists the courses with a link that were updated within the active
period, re-imports them one after another with a one-minute pause after each
course, then sleeps ten minutes before the next round. A failing course is
logged and skipped.

## Library use

The pieces behind the commands can be wired by hand:

- `csemark.domain` – `Course`, `User`, `CourseRules`, validation functions
  and the repository protocols.
- `csemark.mongo_store` – `MongoClient`, `CourseRepo`, `MarkRepo`, `UserRepo`.
- `csemark.downloader` – `SimpleDownloader` and `parse_csv`.
- `csemark.usecases` – `ActiveCourseService`, `AuthzService`,
  `MarkImportService`, `MarkSyncService`.
- `csemark.tele_handlers`, `csemark.tele_helpers`, `csemark.tele_views` and
  `csemark.tele_bot` – the bot's handlers, chat context, replies and the
  `BotApi` / `TeleService` pair.

## What it does not do

- The bot handles text messages only, through long polling; there is no
  webhook mode, and inline buttons or other update kinds are ignored.
- The command menu describes `/clear` as also clearing query history, but no
  query history is kept: `/clear` only removes a course.
- There is no web front-end and no way to edit marks other than re-importing
  the sheet.