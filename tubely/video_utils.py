"""Video probing, fast-start processing and presigned S3 URLs."""

from __future__ import annotations

import dataclasses
import hashlib
import hmac
import json
import os
import subprocess
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional, Union
from urllib.parse import quote

from .database import Video

_ALGORITHM = "AWS4-HMAC-SHA256"


def classify_aspect_ratio(width: int, height: int) -> str:
    """Return "16:9", "9:16" or "other" for the given frame size."""
    if not width or not height:
        raise ValueError("invalid width/height")
    ratio = width / height
    if 1.7 < ratio < 1.8:
        return "16:9"
    if 0.55 < ratio < 0.57:
        return "9:16"
    return "other"


def aspect_ratio_from_probe(output: Union[str, bytes]) -> str:
    """Classify the first stream of ffprobe's JSON output."""
    data = json.loads(output)
    streams = data.get("streams") or []
    if not streams:
        raise ValueError("no streams found")
    first = streams[0]
    return classify_aspect_ratio(int(first.get("width") or 0), int(first.get("height") or 0))


def get_video_aspect_ratio(file_path: str) -> str:
    """Run ffprobe on a file and classify its aspect ratio."""
    result = subprocess.run(
        ["ffprobe", "-v", "error", "-print_format", "json", "-show_streams", str(file_path)],
        capture_output=True,
        check=True,
    )
    return aspect_ratio_from_probe(result.stdout)


def process_video_for_fast_start(file_path: str) -> str:
    """Remux a video with its index at the front; return the new file's path."""
    out_path = f"{file_path}.processing"
    subprocess.run(
        [
            "ffmpeg", "-i", str(file_path), "-c", "copy",
            "-movflags", "faststart", "-f", "mp4", out_path,
        ],
        capture_output=True,
        check=True,
    )
    return out_path


@dataclass(frozen=True)
class AwsCredentials:
    access_key_id: str
    secret_access_key: str
    session_token: Optional[str] = None

    @classmethod
    def from_env(cls) -> "AwsCredentials":
        """Read credentials from the standard AWS environment variables."""
        key_id = os.environ.get("AWS_ACCESS_KEY_ID", "")
        secret_key = os.environ.get("AWS_SECRET_ACCESS_KEY", "")
        if not key_id or not secret_key:
            raise ValueError("AWS credentials are not set in the environment")
        return cls(key_id, secret_key, os.environ.get("AWS_SESSION_TOKEN") or None)


def _hmac(key: bytes, msg: str) -> bytes:
    return hmac.new(key, msg.encode(), hashlib.sha256).digest()


class Presigner:
    """Builds SigV4 query-signed GET URLs for S3 objects."""

    def __init__(self, region: str, credentials: AwsCredentials) -> None:
        self.region = region
        self.credentials = credentials

    def presign_get_object(
        self,
        bucket: str,
        key: str,
        expires_in: Union[timedelta, int] = timedelta(hours=1),
        now: Optional[datetime] = None,
    ) -> str:
        if isinstance(expires_in, timedelta):
            expires_in = int(expires_in.total_seconds())
        now = (now or datetime.now(timezone.utc)).astimezone(timezone.utc)
        amz_date = now.strftime("%Y%m%dT%H%M%SZ")
        date_stamp = now.strftime("%Y%m%d")
        host = f"{bucket}.s3.{self.region}.amazonaws.com"
        path = "/" + quote(key, safe="/-_.~")
        scope = f"{date_stamp}/{self.region}/s3/aws4_request"

        params = {
            "X-Amz-Algorithm": _ALGORITHM,
            "X-Amz-Credential": f"{self.credentials.access_key_id}/{scope}",
            "X-Amz-Date": amz_date,
            "X-Amz-Expires": str(expires_in),
            "X-Amz-SignedHeaders": "host",
        }
        if self.credentials.session_token:
            params["X-Amz-Security-Token"] = self.credentials.session_token
        query = "&".join(
            f"{quote(k, safe='-_.~')}={quote(v, safe='-_.~')}"
            for k, v in sorted(params.items())
        )
        canonical = "\n".join(
            ["GET", path, query, f"host:{host}", "", "host", "UNSIGNED-PAYLOAD"]
        )
        string_to_sign = "\n".join(
            [_ALGORITHM, amz_date, scope, hashlib.sha256(canonical.encode()).hexdigest()]
        )
        signing_key = _hmac(("AWS4" + self.credentials.secret_access_key).encode(), date_stamp)
        for part in (self.region, "s3", "aws4_request"):
            signing_key = _hmac(signing_key, part)
        signature = hmac.new(signing_key, string_to_sign.encode(), hashlib.sha256).hexdigest()
        return f"https://{host}{path}?{query}&X-Amz-Signature={signature}"


def sign_video(video: Video, presigner: Presigner) -> Video:
    """Return a copy of the video whose "bucket,key" URL is replaced by a presigned one."""
    if video.video_url is None:
        raise ValueError("video URL is nil")
    parts = video.video_url.split(",")
    if len(parts) != 2:
        raise ValueError("invalid video URL")
    bucket, key = parts
    url = presigner.presign_get_object(bucket, key, timedelta(hours=1))
    return dataclasses.replace(video, video_url=url)