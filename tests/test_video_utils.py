import subprocess
import uuid
from datetime import datetime, timezone
from unittest import mock

import pytest

from tubely.database import Video
from tubely.video_utils import (
    AwsCredentials,
    Presigner,
    aspect_ratio_from_probe,
    classify_aspect_ratio,
    get_video_aspect_ratio,
    process_video_for_fast_start,
    sign_video,
)

NOW = datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)


def _presigner():
    return Presigner("us-east-2", AwsCredentials("placeholder", "secret"))


def _video(url):
    return Video(id=uuid.uuid4(), title="t", description="d", user_id=uuid.uuid4(), video_url=url)


@pytest.mark.parametrize(
    "w,h,expected",
    [(1920, 1080, "16:9"), (1080, 1920, "9:16"), (100, 100, "other")],
)
def test_classify(w, h, expected):
    assert classify_aspect_ratio(w, h) == expected


def test_classify_zero():
    with pytest.raises(ValueError):
        classify_aspect_ratio(0, 100)


def test_probe_parsing():
    assert aspect_ratio_from_probe('{"streams": [{"width": 1280, "height": 720}]}') == "16:9"


def test_probe_no_streams():
    with pytest.raises(ValueError):
        aspect_ratio_from_probe(b'{"streams": []}')


def test_get_aspect_ratio_runs_ffprobe():
    out = subprocess.CompletedProcess([], 0, stdout=b'{"streams":[{"width":720,"height":1280}]}')
    with mock.patch("tubely.video_utils.subprocess.run", return_value=out) as run:
        assert get_video_aspect_ratio("clip.mp4") == "9:16"
    assert run.call_args[0][0][0] == "ffprobe"
    assert run.call_args[0][0][-1] == "clip.mp4"


def test_fast_start_path():
    with mock.patch("tubely.video_utils.subprocess.run") as run:
        assert process_video_for_fast_start("a.mp4") == "a.mp4.processing"
    assert "faststart" in run.call_args[0][0]


def test_fast_start_failure():
    err = subprocess.CalledProcessError(1, "ffmpeg")
    with mock.patch("tubely.video_utils.subprocess.run", side_effect=err):
        with pytest.raises(subprocess.CalledProcessError):
            process_video_for_fast_start("a.mp4")


def test_presign_deterministic_and_fields():
    p = _presigner()
    a = p.presign_get_object("bucket", "/landscape/x.mp4", 3600, NOW)
    assert a == p.presign_get_object("bucket", "/landscape/x.mp4", 3600, NOW)
    assert a.startswith("https://bucket.s3.us-east-2.amazonaws.com/")
    assert "X-Amz-Expires=3600" in a
    assert "X-Amz-Signature=" in a
    assert a != p.presign_get_object("bucket", "/landscape/y.mp4", 3600, NOW)


def test_credentials_from_env(monkeypatch):
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", "placeholder")
    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "secret")
    monkeypatch.delenv("AWS_SESSION_TOKEN", raising=False)
    assert AwsCredentials.from_env() == AwsCredentials("placeholder", "secret", None)


def test_credentials_missing(monkeypatch):
    monkeypatch.delenv("AWS_ACCESS_KEY_ID", raising=False)
    with pytest.raises(ValueError):
        AwsCredentials.from_env()


def test_sign_video():
    video = _video("bucket,/portrait/a.mp4")
    signed = sign_video(video, _presigner())
    assert signed.video_url.startswith("https://bucket.s3.us-east-2.amazonaws.com/")
    assert video.video_url == "bucket,/portrait/a.mp4"
    assert signed.id == video.id


@pytest.mark.parametrize("url", [None, "no-comma", "a,b,c"])
def test_sign_video_errors(url):
    with pytest.raises(ValueError):
        sign_video(_video(url), _presigner())