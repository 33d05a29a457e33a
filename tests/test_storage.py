import pytest
from botocore.exceptions import ClientError, ProfileNotFound

from ab2.exceptions import StorageError, UploadError
from ab2.storage import S3Storage


class FakeS3Client:
    def __init__(self, error: Exception | None = None) -> None:
        self.objects: dict[tuple[str, str], bytes] = {}
        self.calls = 0
        self.error = error

    def put_object(self, *, Bucket, Key, Body):
        self.calls += 1
        if self.error is not None:
            raise self.error
        self.objects[(Bucket, Key)] = Body.read()
        return {"ETag": '"etag"'}


def test_put_file_streams_contents(tmp_path):
    src = tmp_path / "a.csv"
    src.write_bytes(b"x,y\n1,2\n")
    client = FakeS3Client()

    uri = S3Storage("ingest", client=client).put_file("a.csv", src)

    assert uri == "s3://ingest/a.csv"
    assert client.objects == {("ingest", "a.csv"): b"x,y\n1,2\n"}


def test_second_upload_replaces_first(tmp_path):
    first = tmp_path / "first.csv"
    second = tmp_path / "second.csv"
    first.write_bytes(b"old contents that are longer\n")
    second.write_bytes(b"new\n")
    client = FakeS3Client()
    storage = S3Storage("ingest", client=client)

    storage.put_file("report.csv", first)
    storage.put_file("report.csv", second)

    assert client.objects == {("ingest", "report.csv"): b"new\n"}


def test_missing_file_fails_before_upload(tmp_path):
    client = FakeS3Client()

    with pytest.raises(UploadError) as excinfo:
        S3Storage("ingest", client=client).put_file("a.csv", tmp_path / "missing.csv")

    assert client.calls == 0
    assert excinfo.value.details["key"] == "a.csv"


def test_client_error_is_upload_error(tmp_path):
    src = tmp_path / "a.csv"
    src.write_bytes(b"data")
    error = ClientError({"Error": {"Code": "AccessDenied", "Message": "Access Denied"}}, "PutObject")

    with pytest.raises(UploadError, match="AccessDenied"):
        S3Storage("ingest", client=FakeS3Client(error)).put_file("a.csv", src)


def test_broken_aws_profile_is_storage_error(monkeypatch):
    def broken_session(*args, **kwargs):
        raise ProfileNotFound(profile="does-not-exist")

    monkeypatch.setattr("boto3.session.Session", broken_session)

    with pytest.raises(StorageError, match="does-not-exist") as excinfo:
        S3Storage("ingest")

    assert excinfo.value.details == {"bucket": "ingest"}
