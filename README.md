# tubely

tubely is a small WSGI application for hosting video metadata. It stores users,
refresh tokens and videos in a SQLite database. It serves a static front end
and a directory of assets. It returns videos with presigned S3 GET URLs.

## Installation

```
pip install .
```

`tubely.video_utils` runs `ffprobe` and `ffmpeg` for its video functions, so
both must be on your `PATH` if you use them.

## Configuration

The `tubely` command first loads a `.env` file from the working directory. If
that file is missing or sets nothing, the command exits with
`Error loading .env file`. After that, each of these variables must be set and
non-empty. If one is missing, the command exits with a message that names it.

| Variable        | Meaning                                             |
|-----------------|-----------------------------------------------------|
| `DB_PATH`       | path of the SQLite database file                    |
| `JWT_SECRET`    | secret used to check HS256 bearer tokens            |
| `PLATFORM`      | `dev` enables the `/admin/reset` endpoint           |
| `FILEPATH_ROOT` | directory served under `/app/`                      |
| `ASSETS_ROOT`   | directory served under `/assets/`                   |
| `S3_BUCKET`     | bucket name (read but not used by the endpoints)    |
| `S3_REGION`     | region used when presigning video URLs              |
| `S3_CF_DISTRO`  | required, but not used otherwise                    |
| `PORT`          | port to listen on                                   |

Presigning also needs `AWS_ACCESS_KEY_ID` and `AWS_SECRET_ACCESS_KEY`.
`AWS_SESSION_TOKEN` is optional.

A minimal `.env`:

```
DB_PATH=./tubely.db
JWT_SECRET=secret
PLATFORM=dev
FILEPATH_ROOT=./app
ASSETS_ROOT=./assets
S3_BUCKET=tubely-videos
S3_REGION=us-east-1
S3_CF_DISTRO=placeholder
PORT=8091
AWS_ACCESS_KEY_ID=placeholder
AWS_SECRET_ACCESS_KEY=secret
```

## Running

```
tubely
```

The command creates the assets directory if it does not exist. It then serves
the application with Werkzeug's development server on `0.0.0.0:$PORT` and logs
`Serving on: http://localhost:$PORT/app/`.

## Endpoints

Authenticated endpoints expect an `Authorization: Bearer token` header. The
token must be an HS256 JWT signed with `JWT_SECRET` whose `sub` claim is the
user's id. An expired token is rejected. A missing or malformed header gives
401 `Couldn't find JWT`, and a bad token gives 401 `Couldn't validate JWT`.

- `POST /api/videos` (authenticated) takes a JSON object with `title` and
  `description`. It creates a video owned by the caller and answers 201 with
  the video.
- `GET /api/videos` (authenticated) lists the caller's videos, newest first,
  each with a presigned video URL.
- `GET /api/videos/{videoID}` returns one video with a presigned video URL.
- `DELETE /api/videos/{videoID}` (authenticated) deletes one of the caller's
  videos and answers 204. If the video does not belong to the caller or does
  not exist, it answers 403.
- `POST /admin/reset` empties every table when `PLATFORM=dev`. Otherwise it
  answers 403.
- `/app/...` serves files from `FILEPATH_ROOT`. `/app/` serves `index.html`.
- `/assets/...` serves files from `ASSETS_ROOT` with `Cache-Control: no-store`,
  `Pragma: no-cache` and `Expires: 0`.

Errors come back as JSON in the form `{"error": "message"}`.

A video's stored `video_url` has the form `bucket,key`. Responses replace it
with a presigned URL that is valid for one hour. A video without a stored URL
cannot be signed. Requesting it, or listing videos that include it, answers 500
`Couldn't get signed video URL`.

## What it does not do

- It has no HTTP endpoints to create users, log in, refresh or revoke tokens.
  Users and refresh tokens exist only at the `Database` level, and the
  application never issues access tokens.
- It has no endpoints to upload thumbnails or videos, and it does not upload
  anything to S3. Because of that, nothing over HTTP ever sets a video's
  `video_url` or `thumbnail_url`.

## Using it as a library

- `tubely.app.create_app(config, db, presigner)` returns a `TubelyApp`, which
  is a WSGI application.
- `tubely.config.load_config()` builds an `ApiConfig` from the environment.
  `must_getenv(key)` raises `MissingEnvironmentError` for an unset or empty
  variable.
- `tubely.database.Database(path)` is the SQLite store. It creates its tables
  when it opens and works as a context manager. It provides methods for
  users, refresh tokens and videos, and `reset()`. Lookups return `None` when
  nothing matches.
- `tubely.video_utils` provides the following:
  - `get_video_aspect_ratio(path)` returns `"16:9"`, `"9:16"` or `"other"`,
    using ffprobe.
  - `process_video_for_fast_start(path)` uses ffmpeg to write
    `path + ".processing"`.
  - `Presigner(region, credentials).presign_get_object(bucket, key)` builds a
    SigV4 presigned GET URL.
  - `sign_video(video, presigner)` returns a copy of a video with its URL
    signed.
- `tubely.responses` provides `respond_with_json`, `respond_with_error` and
  the `no_cache` WSGI middleware.