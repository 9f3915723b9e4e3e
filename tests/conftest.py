"""Shared fixtures: temporary SQLite database and an in-memory object store."""

import base64
import hashlib
import io

import pytest
import pytest_asyncio
from botocore.exceptions import ClientError

from files_core.config import Settings
from files_core.container import build_container
from files_core.exceptions import ConnectionFailed
from files_core.models.schemas import UserCreate
from files_core.services.remote_storage import S3Session

BUCKET = "test-bucket"


def _not_found(operation: str):
    return ClientError({"Error": {"Code": "NoSuchKey", "Message": "Not found"}}, operation)


class FakeObjectStore:
    """Bucket contents shared by every fake client"""

    def __init__(self):
        self.objects = {}
        self.failing_keys = set()
        self.corrupt_keys = set()

    def put(self, key: str, data: bytes, content_type: str = "application/octet-stream"):
        self.objects[key] = {"data": data, "content_type": content_type}

    def keys(self):
        return sorted(self.objects)


class FakeS3Client:
    """The subset of the boto3 S3 client the gateway calls"""

    def __init__(self, store: FakeObjectStore, page_size: int = 1000):
        self.store = store
        self.page_size = page_size
        self.closed = False

    def list_objects_v2(self, Bucket, Prefix="", Delimiter=None, MaxKeys=None, ContinuationToken=None):
        contents, prefixes = [], set()
        for key in self.store.keys():
            if not key.startswith(Prefix):
                continue
            rest = key[len(Prefix):]
            if Delimiter and Delimiter in rest:
                prefixes.add(Prefix + rest.split(Delimiter, 1)[0] + Delimiter)
                continue
            contents.append({"Key": key, "Size": len(self.store.objects[key]["data"])})

        start = int(ContinuationToken or 0)
        limit = MaxKeys or self.page_size
        page = contents[start:start + limit]
        response = {"Contents": page, "KeyCount": len(page), "IsTruncated": start + limit < len(contents)}
        if response["IsTruncated"]:
            response["NextContinuationToken"] = str(start + limit)
        if prefixes:
            response["CommonPrefixes"] = [{"Prefix": p} for p in sorted(prefixes)]
        return response

    def head_object(self, Bucket, Key):
        if Key not in self.store.objects:
            raise ClientError({"Error": {"Code": "404", "Message": "Not Found"}}, "HeadObject")
        return {"ContentLength": len(self.store.objects[Key]["data"])}

    def put_object(self, Bucket, Key, Body=b"", ContentType=None, ChecksumAlgorithm=None):
        self.store.put(Key, Body, ContentType or "application/octet-stream")
        return {"ETag": f'"{hashlib.md5(Body).hexdigest()}"'}

    def get_object(self, Bucket, Key, ChecksumMode=None):
        if Key in self.store.failing_keys:
            raise ClientError({"Error": {"Code": "InternalError", "Message": "boom"}}, "GetObject")
        if Key not in self.store.objects:
            raise _not_found("GetObject")
        data = self.store.objects[Key]["data"]
        served = data + b"garbage" if Key in self.store.corrupt_keys else data
        return {
            "Body": io.BytesIO(served),
            "ContentLength": len(served),
            "ETag": f'"{hashlib.md5(data).hexdigest()}"',
            "ChecksumSHA256": base64.b64encode(hashlib.sha256(data).digest()).decode(),
        }

    def delete_object(self, Bucket, Key):
        self.store.objects.pop(Key, None)
        return {}

    def generate_presigned_url(self, ClientMethod, Params=None, ExpiresIn=3600):
        return f"https://storage.test/{Params['Bucket']}/{Params['Key']}?expires={ExpiresIn}"

    def close(self):
        self.closed = True


class FakeConnector:
    """Stands in for S3Connector and records which credentials opened sessions"""

    def __init__(self, store: FakeObjectStore):
        self.store = store
        self.opened = []
        self.reject = False
        self.page_size = 1000

    def __call__(self, credentials):
        if self.reject:
            raise ConnectionFailed("Storage connection failed: invalid credentials")
        self.opened.append(credentials)
        return S3Session(client=FakeS3Client(self.store, self.page_size), bucket=BUCKET)


@pytest.fixture
def object_store():
    return FakeObjectStore()


@pytest.fixture
def connector(object_store):
    return FakeConnector(object_store)


@pytest.fixture
def test_settings(tmp_path):
    settings = Settings()
    settings.DATABASE_URL = f"sqlite+aiosqlite:///{tmp_path / 'files_core.db'}"
    settings.DATABASE_ECHO = False
    settings.STORAGE_EMAIL = "default-access-key"
    settings.STORAGE_PASSWORD = "default-secret-key"
    settings.ENCRYPTION_SECRET_KEY = "test-encryption-secret"
    settings.SECRET_KEY = "test-secret"
    settings.BCRYPT_ROUNDS = 4
    return settings


@pytest_asyncio.fixture
async def container(test_settings, connector):
    c = build_container(test_settings, connector=connector)
    await c.init_models()
    yield c
    await c.aclose()


@pytest_asyncio.fixture
async def alice(container):
    return await container.users.create(
        UserCreate(email="alice@example.com", name="Alice", password="wonderland")
    )


@pytest_asyncio.fixture
async def bob(container):
    return await container.users.create(
        UserCreate(email="bob@example.com", name="Bob", password="builder")
    )
