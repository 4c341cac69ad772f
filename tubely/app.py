"""The Tubely HTTP application."""

from __future__ import annotations

import base64
import hashlib
import hmac
import json
import logging
import sys
import time
import uuid
from typing import Callable, Optional

from werkzeug.exceptions import HTTPException, NotFound
from werkzeug.routing import Map, Rule
from werkzeug.utils import send_from_directory
from werkzeug.wrappers import Request, Response

from .config import ApiConfig, MissingEnvironmentError, load_config
from .database import Database
from .responses import no_cache, respond_with_error, respond_with_json
from .video_utils import AwsCredentials, Presigner, sign_video

logger = logging.getLogger(__name__)


class _ApiError(Exception):
    def __init__(self, code: int, message: str, error: Optional[BaseException] = None):
        super().__init__(message)
        self.code = code
        self.message = message
        self.error = error


def _b64encode(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode()


def _b64decode(text: str) -> bytes:
    return base64.urlsafe_b64decode(text + "=" * (-len(text) % 4))


def _make_jwt(user_id: uuid.UUID, secret: str, expires_in: int) -> str:
    now = int(time.time())
    header = _b64encode(json.dumps({"alg": "HS256", "typ": "JWT"}).encode())
    claims = _b64encode(
        json.dumps({"sub": str(user_id), "iat": now, "exp": now + expires_in}).encode()
    )
    signing_input = f"{header}.{claims}"
    sig = hmac.new(secret.encode(), signing_input.encode(), hashlib.sha256).digest()
    return f"{signing_input}.{_b64encode(sig)}"


def _validate_jwt(token: str, secret: str) -> uuid.UUID:
    parts = token.split(".")
    if len(parts) != 3:
        raise ValueError("malformed token")
    header, claims, sig = parts
    expected = hmac.new(secret.encode(), f"{header}.{claims}".encode(), hashlib.sha256).digest()
    if not hmac.compare_digest(expected, _b64decode(sig)):
        raise ValueError("invalid signature")
    if json.loads(_b64decode(header)).get("alg") != "HS256":
        raise ValueError("unexpected algorithm")
    payload = json.loads(_b64decode(claims))
    if "exp" in payload and payload["exp"] <= time.time():
        raise ValueError("token expired")
    return uuid.UUID(str(payload.get("sub", "")))


def _bearer_token(request: Request) -> str:
    header = request.headers.get("Authorization", "")
    if not header:
        raise ValueError("no auth header included in request")
    parts = header.split(maxsplit=1)
    if len(parts) != 2 or parts[0] != "Bearer" or not parts[1].strip():
        raise ValueError("malformed authorization header")
    return parts[1].strip()


class TubelyApp:
    """WSGI application serving the video API, the web app and stored assets."""

    def __init__(self, config: ApiConfig, db: Database, presigner: Presigner) -> None:
        self.config = config
        self.db = db
        self.presigner = presigner
        self.url_map = Map([
            Rule("/api/videos", methods=["POST"], endpoint="video_create"),
            Rule("/api/videos", methods=["GET"], endpoint="videos_list"),
            Rule("/api/videos/<video_id>", methods=["GET"], endpoint="video_get"),
            Rule("/api/videos/<video_id>", methods=["DELETE"], endpoint="video_delete"),
            Rule("/admin/reset", methods=["POST"], endpoint="reset"),
            Rule("/app/", endpoint="app_static", defaults={"path": ""}),
            Rule("/app/<path:path>", endpoint="app_static"),
            Rule("/assets/<path:path>", endpoint="assets"),
        ])
        self._handlers: dict[str, Callable] = {
            "video_create": self._video_create,
            "videos_list": self._videos_list,
            "video_get": self._video_get,
            "video_delete": self._video_delete,
            "reset": self._reset,
            "app_static": self._app_static,
            "assets": self._assets,
        }

    def __call__(self, environ, start_response):
        request = Request(environ)
        adapter = self.url_map.bind_to_environ(environ)
        try:
            endpoint, args = adapter.match()
            response = self._handlers[endpoint](request, **args)
        except _ApiError as err:
            response = respond_with_error(err.code, err.message, err.error)
        except HTTPException as err:
            response = err
        return response(environ, start_response)

    def _authenticate(self, request: Request) -> uuid.UUID:
        try:
            bearer = _bearer_token(request)
        except ValueError as err:
            raise _ApiError(401, "Couldn't find JWT", err) from err
        try:
            return _validate_jwt(bearer, self.config.jwt_secret)
        except (ValueError, json.JSONDecodeError) as err:
            raise _ApiError(401, "Couldn't validate JWT", err) from err

    @staticmethod
    def _parse_id(raw: str, message: str) -> uuid.UUID:
        try:
            return uuid.UUID(raw)
        except ValueError as err:
            raise _ApiError(400, message, err) from err

    def _signed(self, video):
        try:
            return sign_video(video, self.presigner)
        except ValueError as err:
            raise _ApiError(500, "Couldn't get signed video URL", err) from err

    def _video_create(self, request: Request) -> Response:
        user_id = self._authenticate(request)
        try:
            params = json.loads(request.get_data() or b"null")
            if not isinstance(params, dict):
                raise ValueError("expected a JSON object")
        except ValueError as err:
            raise _ApiError(500, "Couldn't decode parameters", err) from err
        video = self.db.create_video(
            str(params.get("title") or ""), str(params.get("description") or ""), user_id
        )
        return respond_with_json(201, video)

    def _video_delete(self, request: Request, video_id: str) -> Response:
        vid = self._parse_id(video_id, "Invalid ID")
        user_id = self._authenticate(request)
        video = self.db.get_video(vid)
        if video is None or video.user_id != user_id:
            raise _ApiError(403, "You can't delete this video")
        self.db.delete_video(vid)
        return Response(status=204)

    def _video_get(self, request: Request, video_id: str) -> Response:
        vid = self._parse_id(video_id, "Invalid video ID")
        video = self.db.get_video(vid)
        if video is None:
            raise _ApiError(500, "Couldn't get signed video URL", ValueError("video URL is nil"))
        return respond_with_json(200, self._signed(video))

    def _videos_list(self, request: Request) -> Response:
        user_id = self._authenticate(request)
        videos = [self._signed(v) for v in self.db.get_videos(user_id)]
        return respond_with_json(200, videos)

    def _reset(self, request: Request) -> Response:
        if self.config.platform != "dev":
            return Response("Reset is only allowed in dev environment.", status=403)
        try:
            self.db.reset()
        except Exception as err:
            raise _ApiError(500, "Couldn't reset database", err) from err
        return Response("Database reset to initial state", status=200)

    def _app_static(self, request: Request, path: str):
        return send_from_directory(
            self.config.filepath_root, path or "index.html", request.environ
        )

    def _assets(self, request: Request, path: str):
        try:
            response = send_from_directory(self.config.assets_root, path, request.environ)
        except NotFound as err:
            response = err
        return no_cache(response)


def create_app(config: ApiConfig, db: Database, presigner: Presigner) -> TubelyApp:
    return TubelyApp(config, db, presigner)


def main(argv=None) -> int:
    from dotenv import load_dotenv
    from werkzeug.serving import run_simple

    logging.basicConfig(level=logging.INFO)
    if not load_dotenv(".env"):
        sys.exit("Error loading .env file")
    try:
        config = load_config()
        credentials = AwsCredentials.from_env()
    except (MissingEnvironmentError, ValueError) as err:
        sys.exit(str(err))
    try:
        db = Database(config.db_path)
    except Exception as err:
        sys.exit(f"Couldn't connect to database: {err}")
    try:
        config.ensure_assets_dir()
    except OSError as err:
        sys.exit(f"Couldn't create assets directory: {err}")
    app = create_app(config, db, Presigner(config.s3_region, credentials))
    logger.info("Serving on: http://localhost:%s/app/", config.port)
    run_simple("0.0.0.0", int(config.port), app)
    return 0


if __name__ == "__main__":
    sys.exit(main())