"""Unit tests for the S3 blob store."""

from io import BytesIO
from pathlib import Path
from unittest import mock

import pytest
from botocore.exceptions import ClientError, EndpointConnectionError

from stashbase.core.exceptions import NotFoundError, StorageIOError
from stashbase.infrastructure.storage.s3_blob_store import S3BlobStore, S3BlobStoreSettings

BOTO3_CLIENT = "stashbase.infrastructure.storage.s3_blob_store.boto3.client"


def _client_error(code: str, message: str, operation: str) -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": message}}, operation)


@pytest.fixture
def s3_store() -> S3BlobStore:
    return S3BlobStore(
        S3BlobStoreSettings(
            bucket="test-bucket",
            region="us-east-1",
            access_key_id="AKIATEST",
            secret_access_key="secret",
            object_prefix="attachments/",
            chunk_size=4,
        )
    )


@pytest.mark.asyncio
async def test_put_stream_uploads_under_prefix(s3_store: S3BlobStore) -> None:
    with mock.patch(BOTO3_CLIENT) as mock_client:
        client = mock.MagicMock()
        mock_client.return_value = client

        source = BytesIO(b"hello")
        blob_id = await s3_store.put(source)

    client.upload_fileobj.assert_called_once_with(source, "test-bucket", f"attachments/{blob_id}")
    assert s3_store.locator(blob_id) == f"s3/attachments/{blob_id}"


@pytest.mark.asyncio
async def test_put_path_uploads_file(s3_store: S3BlobStore, sample_file: Path) -> None:
    with mock.patch(BOTO3_CLIENT) as mock_client:
        client = mock.MagicMock()
        mock_client.return_value = client

        blob_id = await s3_store.put(sample_file)

    client.upload_file.assert_called_once_with(
        str(sample_file), "test-bucket", f"attachments/{blob_id}"
    )


@pytest.mark.asyncio
async def test_put_missing_file_raises_not_found(s3_store: S3BlobStore, tmp_path: Path) -> None:
    with mock.patch(BOTO3_CLIENT) as mock_client:
        client = mock.MagicMock()
        mock_client.return_value = client

        with pytest.raises(NotFoundError):
            await s3_store.put(tmp_path / "i.dont.exist")

    client.upload_file.assert_not_called()


@pytest.mark.asyncio
async def test_put_failure_raises_storage_error(s3_store: S3BlobStore) -> None:
    with mock.patch(BOTO3_CLIENT) as mock_client:
        client = mock.MagicMock()
        client.upload_fileobj.side_effect = _client_error("AccessDenied", "denied", "PutObject")
        mock_client.return_value = client

        with pytest.raises(StorageIOError, match="Failed to upload"):
            await s3_store.put(BytesIO(b"x"))


@pytest.mark.asyncio
async def test_get_streams_body_in_chunks(s3_store: S3BlobStore) -> None:
    with mock.patch(BOTO3_CLIENT) as mock_client:
        client = mock.MagicMock()
        client.get_object.return_value = {"Body": BytesIO(b"payload!!")}
        mock_client.return_value = client

        chunks = [chunk async for chunk in await s3_store.get("abc")]

    assert chunks == [b"payl", b"oad!", b"!"]
    client.get_object.assert_called_once_with(Bucket="test-bucket", Key="attachments/abc")


@pytest.mark.asyncio
async def test_get_missing_raises_not_found(s3_store: S3BlobStore) -> None:
    with mock.patch(BOTO3_CLIENT) as mock_client:
        client = mock.MagicMock()
        client.get_object.side_effect = _client_error("NoSuchKey", "missing", "GetObject")
        mock_client.return_value = client

        with pytest.raises(NotFoundError, match="Blob not found"):
            await s3_store.get("abc")


@pytest.mark.asyncio
async def test_get_transport_error_raises_storage_error(s3_store: S3BlobStore) -> None:
    with mock.patch(BOTO3_CLIENT) as mock_client:
        client = mock.MagicMock()
        client.get_object.side_effect = EndpointConnectionError(endpoint_url="http://s3")
        mock_client.return_value = client

        with pytest.raises(StorageIOError):
            await s3_store.get("abc")


@pytest.mark.asyncio
async def test_delete_checks_then_deletes(s3_store: S3BlobStore) -> None:
    with mock.patch(BOTO3_CLIENT) as mock_client:
        client = mock.MagicMock()
        mock_client.return_value = client

        await s3_store.delete("abc")

    client.head_object.assert_called_once_with(Bucket="test-bucket", Key="attachments/abc")
    client.delete_object.assert_called_once_with(Bucket="test-bucket", Key="attachments/abc")


@pytest.mark.asyncio
async def test_delete_missing_raises_not_found(s3_store: S3BlobStore) -> None:
    with mock.patch(BOTO3_CLIENT) as mock_client:
        client = mock.MagicMock()
        client.head_object.side_effect = _client_error("404", "Not Found", "HeadObject")
        mock_client.return_value = client

        with pytest.raises(NotFoundError):
            await s3_store.delete("abc")

    client.delete_object.assert_not_called()


@pytest.mark.asyncio
async def test_exists(s3_store: S3BlobStore) -> None:
    with mock.patch(BOTO3_CLIENT) as mock_client:
        client = mock.MagicMock()
        client.head_object.side_effect = [None, _client_error("404", "Not Found", "HeadObject")]
        mock_client.return_value = client

        assert await s3_store.exists("abc") is True
        assert await s3_store.exists("abc") is False


@pytest.mark.asyncio
async def test_connect_checks_bucket(s3_store: S3BlobStore) -> None:
    with mock.patch(BOTO3_CLIENT) as mock_client:
        client = mock.MagicMock()
        client.head_bucket.side_effect = _client_error("403", "Forbidden", "HeadBucket")
        mock_client.return_value = client

        with pytest.raises(StorageIOError, match="test-bucket"):
            await s3_store.connect()


def test_get_client_passes_endpoint_url_when_configured() -> None:
    store = S3BlobStore(
        S3BlobStoreSettings(
            bucket="test-bucket",
            region="us-east-1",
            access_key_id="AKIATEST",
            secret_access_key="secret",
            endpoint_url="http://localhost:4566",
        )
    )

    with mock.patch(BOTO3_CLIENT) as mock_client:
        store._get_client()

    mock_client.assert_called_once_with(
        "s3",
        region_name="us-east-1",
        aws_access_key_id="AKIATEST",
        aws_secret_access_key="secret",
        endpoint_url="http://localhost:4566",
    )


def test_get_client_uses_default_credentials_without_keys() -> None:
    store = S3BlobStore(S3BlobStoreSettings(bucket="test-bucket"))

    with mock.patch(BOTO3_CLIENT) as mock_client:
        store._get_client()

    mock_client.assert_called_once_with("s3", region_name="us-east-1")
