#!/usr/bin/env python3
"""ページングのテスト"""
import pytest

from conftest import client_error
from s3_mp_janitor.core.cursor import UploadCursor
from s3_mp_janitor.errors import ListingError
from s3_mp_janitor.models.upload import ResumeToken


def fill(fake_s3, count, bucket="bucket"):
    for i in range(count):
        fake_s3.add_upload(bucket, f"key-{i:03d}", f"upload-{i:03d}")


@pytest.mark.parametrize("page_size", [1, 3, 7, 1000])
def test_yields_every_upload_regardless_of_page_size(fake_s3, executor, page_size):
    fill(fake_s3, 7)
    cursor = UploadCursor(fake_s3, "bucket", executor, page_size=page_size)

    upload_ids = [d.upload_id for d in cursor]

    assert upload_ids == [f"upload-{i:03d}" for i in range(7)]
    assert len(fake_s3.list_calls) == max(1, -(-7 // page_size))


def test_empty_bucket_yields_nothing(fake_s3, executor):
    cursor = UploadCursor(fake_s3, "empty", executor)
    assert list(cursor) == []
    assert len(fake_s3.list_calls) == 1


def test_list_uploads_returns_next_token(fake_s3, executor):
    fill(fake_s3, 5)
    cursor = UploadCursor(fake_s3, "bucket", executor, page_size=2)

    page, token = cursor.list_uploads()

    assert [d.key for d in page] == ["key-000", "key-001"]
    assert token == ResumeToken("key-001", "upload-001")


def test_resuming_from_token_yields_remaining_suffix(fake_s3, executor):
    fill(fake_s3, 5)
    cursor = UploadCursor(fake_s3, "bucket", executor, page_size=2)
    _, token = cursor.list_uploads()

    remaining = [d.upload_id for d in cursor.iter_uploads(token)]

    assert remaining == ["upload-002", "upload-003", "upload-004"]
    assert fake_s3.list_calls[-1]["KeyMarker"] == "key-003"


def test_descriptor_fields_are_mapped(fake_s3, executor):
    upload = fake_s3.add_upload("bucket", "a/b.bin", "u-1", owner="owner-id")
    descriptor = next(iter(UploadCursor(fake_s3, "bucket", executor)))

    assert descriptor.bucket == "bucket"
    assert descriptor.key == "a/b.bin"
    assert descriptor.initiated == upload["Initiated"]
    assert descriptor.owner == "owner-id"
    assert descriptor.storage_class == "STANDARD"


def test_transient_listing_errors_are_retried(fake_s3, executor, sleeps):
    fill(fake_s3, 2)
    fake_s3.list_errors["bucket"] = [
        client_error("SlowDown", 503, "ListMultipartUploads"),
        client_error("Throttling", 400, "ListMultipartUploads"),
    ]

    uploads = list(UploadCursor(fake_s3, "bucket", executor))

    assert len(uploads) == 2
    assert len(sleeps) == 2


def test_permanent_listing_error_raises_listing_error(fake_s3, executor, sleeps):
    fake_s3.list_errors["bucket"] = [client_error("AccessDenied", 403, "ListMultipartUploads")]

    with pytest.raises(ListingError) as excinfo:
        list(UploadCursor(fake_s3, "bucket", executor))

    assert excinfo.value.bucket == "bucket"
    assert sleeps == []


def test_exhausted_retries_raise_listing_error(fake_s3, executor):
    fake_s3.list_errors["bucket"] = [
        client_error("SlowDown", 503, "ListMultipartUploads") for _ in range(3)
    ]

    with pytest.raises(ListingError):
        list(UploadCursor(fake_s3, "bucket", executor))
    assert len(fake_s3.list_calls) == 3


def test_truncated_page_without_marker_ends_listing(executor):
    class BrokenClient:
        def list_multipart_uploads(self, **kwargs):
            return {"Uploads": [], "IsTruncated": True}

    page, token = UploadCursor(BrokenClient(), "bucket", executor).list_uploads()
    assert page == []
    assert token is None
