from unittest.mock import MagicMock

import httpx
import pytest
from botocore.exceptions import ClientError

import storage
from errors import StorageError
from storage import PresentationStorage, head_public_url, presentation_object_exists

BASE_URL = "https://storage.test/foundathon-presentation"
PATH = "user-1/team-1/submission.pptx"


def _client_error(code, message="boom"):
    return ClientError({"Error": {"Code": code, "Message": message}}, "PutObject")


@pytest.fixture
def s3_client():
    return MagicMock()


@pytest.fixture
def presentation_storage(s3_client):
    return PresentationStorage(client=s3_client)


def test_upload_never_overwrites(presentation_storage, s3_client):
    presentation_storage.upload(PATH, b"deck", "application/vnd.ms-powerpoint")

    s3_client.put_object.assert_called_once_with(
        Bucket="foundathon-presentation",
        Key=PATH,
        Body=b"deck",
        IfNoneMatch="*",
        ContentType="application/vnd.ms-powerpoint",
    )


def test_upload_error_classification(presentation_storage, s3_client):
    s3_client.put_object.side_effect = _client_error("PreconditionFailed")
    with pytest.raises(StorageError) as exc_info:
        presentation_storage.upload(PATH, b"deck")
    assert exc_info.value.is_duplicate

    s3_client.put_object.side_effect = _client_error("AccessDenied")
    with pytest.raises(StorageError) as exc_info:
        presentation_storage.upload(PATH, b"deck")
    assert exc_info.value.is_policy_violation
    assert not exc_info.value.is_duplicate


def test_upload_records_file_name(presentation_storage, s3_client):
    presentation_storage.upload(PATH, b"deck", file_name="Ünïcode deck.pptx")
    metadata = s3_client.put_object.call_args.kwargs["Metadata"]
    assert metadata == {"original-file-name": "%C3%9Cn%C3%AFcode%20deck.pptx"}


def test_stat_reads_stored_object(presentation_storage, s3_client):
    s3_client.head_object.return_value = {
        "ContentLength": 4000,
        "ContentType": "application/vnd.ms-powerpoint",
        "Metadata": {"original-file-name": "Team%20Deck.ppt"},
    }

    assert presentation_storage.stat(PATH) == {
        "size": 4000,
        "content_type": "application/vnd.ms-powerpoint",
        "file_name": "Team Deck.ppt",
    }
    s3_client.head_object.assert_called_once_with(Bucket="foundathon-presentation", Key=PATH)

    s3_client.head_object.side_effect = _client_error("404", "Not Found")
    with pytest.raises(StorageError) as exc_info:
        presentation_storage.stat(PATH)
    assert exc_info.value.is_not_found


def test_error_predicates_from_message():
    assert StorageError("The resource already exists").is_duplicate
    assert StorageError("new row violates row-level security policy").is_policy_violation
    assert StorageError("missing", code="NoSuchKey").is_not_found
    assert not StorageError("timeout").is_not_found


def test_list_returns_direct_children(presentation_storage, s3_client):
    s3_client.list_objects_v2.return_value = {
        "Contents": [
            {"Key": "user-1/team-1/submission.pptx"},
            {"Key": "user-1/team-1/drafts/old.pptx"},
        ]
    }

    assert presentation_storage.list("user-1/team-1") == ["submission.pptx"]
    s3_client.list_objects_v2.assert_called_once_with(Bucket="foundathon-presentation", Prefix="user-1/team-1/")


def test_public_url_and_path(presentation_storage):
    url = presentation_storage.get_public_url(PATH)

    assert url == f"{BASE_URL}/{PATH}"
    assert presentation_storage.storage_path_from_public_url(url + "?v=1") == PATH
    assert presentation_storage.storage_path_from_public_url("https://elsewhere.test/x") is None


def test_remove(presentation_storage, s3_client):
    presentation_storage.remove([PATH])
    s3_client.delete_objects.assert_called_once_with(
        Bucket="foundathon-presentation",
        Delete={"Objects": [{"Key": PATH}], "Quiet": True},
    )


def test_head_probe(monkeypatch):
    request = httpx.Request("HEAD", f"{BASE_URL}/{PATH}")

    monkeypatch.setattr(storage.httpx, "head", lambda url, **kwargs: httpx.Response(404, request=request))
    assert head_public_url(str(request.url)) is False

    monkeypatch.setattr(storage.httpx, "head", lambda url, **kwargs: httpx.Response(200, request=request))
    assert head_public_url(str(request.url)) is True

    monkeypatch.setattr(storage.httpx, "head", lambda url, **kwargs: httpx.Response(503, request=request))
    assert head_public_url(str(request.url)) is None

    def unreachable(url, **kwargs):
        raise httpx.ConnectError("connection refused", request=request)

    monkeypatch.setattr(storage.httpx, "head", unreachable)
    assert head_public_url(str(request.url)) is None


class TestObjectExists:
    def test_listed_object_exists(self, fake_storage):
        fake_storage.objects[PATH] = b"deck"
        assert presentation_object_exists(fake_storage, PATH, None) is True

    def test_missing_directory_is_absent(self, fake_storage):
        fake_storage.list_error = StorageError("no bucket", code="NoSuchBucket")
        assert presentation_object_exists(fake_storage, PATH, f"{BASE_URL}/{PATH}") is False

    def test_empty_listing_without_url_is_absent(self, fake_storage):
        assert presentation_object_exists(fake_storage, PATH, None) is False

    def test_empty_listing_is_not_second_guessed(self, fake_storage, monkeypatch):
        probed = []

        def inconclusive(url):
            probed.append(url)
            return None

        monkeypatch.setattr(storage, "head_public_url", inconclusive)
        assert presentation_object_exists(fake_storage, PATH, f"{BASE_URL}/{PATH}") is False
        assert probed == []

    def test_unparseable_path_falls_back_to_head(self, fake_storage, monkeypatch):
        monkeypatch.setattr(storage, "head_public_url", lambda url: False)
        assert presentation_object_exists(fake_storage, None, "https://cdn.test/deck.pptx") is False

        monkeypatch.setattr(storage, "head_public_url", lambda url: None)
        assert presentation_object_exists(fake_storage, None, "https://cdn.test/deck.pptx") is True

    def test_head_probe_decides_after_listing_error(self, fake_storage, monkeypatch):
        fake_storage.list_error = StorageError("throttled", code="SlowDown")

        monkeypatch.setattr(storage, "head_public_url", lambda url: False)
        assert presentation_object_exists(fake_storage, PATH, f"{BASE_URL}/{PATH}") is False

        monkeypatch.setattr(storage, "head_public_url", lambda url: None)
        assert presentation_object_exists(fake_storage, PATH, f"{BASE_URL}/{PATH}") is True

    def test_path_recovered_from_public_url(self, fake_storage):
        fake_storage.objects[PATH] = b"deck"
        assert presentation_object_exists(fake_storage, None, f"{BASE_URL}/{PATH}") is True
