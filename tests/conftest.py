"""
Shared test fixtures for tokzic-functions.

Provides mock implementations of:
- Firestore (collections, documents, equality queries, get_all)
- Google Cloud Storage (GCS)
- OpenAI (chat completions and embeddings)
- Replicate (predictions)
- Pinecone (index upsert / fetch / query)
- Sample swipe and video data
"""

import pytest
import sys
from pathlib import Path
from types import SimpleNamespace
from typing import Any, Dict, List, Optional

# Add function directories to path for imports
FUNCTIONS_ROOT = Path(__file__).parent.parent
for func_dir in FUNCTIONS_ROOT.iterdir():
    if func_dir.is_dir() and func_dir.name.endswith('_function'):
        sys.path.insert(0, str(func_dir))


# ============================================================================
# FIRESTORE MOCKING
# ============================================================================

class MockDocumentSnapshot:
    """Mock Firestore DocumentSnapshot."""

    def __init__(self, doc_id: str, data: Optional[Dict[str, Any]]):
        self.id = doc_id
        self._data = data
        self.exists = data is not None

    def to_dict(self) -> Optional[Dict[str, Any]]:
        return dict(self._data) if self._data is not None else None


class MockDocumentReference:
    """Mock Firestore DocumentReference."""

    def __init__(self, collection: "MockCollection", doc_id: str):
        self.collection = collection
        self.id = doc_id

    def get(self) -> MockDocumentSnapshot:
        return MockDocumentSnapshot(self.id, self.collection.docs.get(self.id))

    def set(self, data: Dict[str, Any], merge: bool = False):
        self.collection.set_calls.append((self.id, dict(data), merge))
        if merge and self.id in self.collection.docs:
            self.collection.docs[self.id].update(data)
        else:
            self.collection.docs[self.id] = dict(data)


class MockQuery:
    """Mock Firestore query supporting a single equality filter."""

    def __init__(self, collection: "MockCollection", field: str, value: Any):
        self.collection = collection
        self.field = field
        self.value = value

    def stream(self):
        for doc_id, data in self.collection.docs.items():
            if data.get(self.field) == self.value:
                yield MockDocumentSnapshot(doc_id, data)


class MockCollection:
    """Mock Firestore CollectionReference."""

    def __init__(self, name: str):
        self.name = name
        self.docs: Dict[str, Dict[str, Any]] = {}
        self.set_calls: List[tuple] = []

    def document(self, doc_id: str) -> MockDocumentReference:
        return MockDocumentReference(self, doc_id)

    def where(self, filter=None):
        assert filter.op_string == "=="
        return MockQuery(self, filter.field_path, filter.value)

    def add_doc(self, doc_id: str, data: Dict[str, Any]):
        """Helper to seed a document."""
        self.docs[doc_id] = dict(data)


class MockFirestoreClient:
    """Mock google.cloud.firestore.Client."""

    def __init__(self):
        self._collections: Dict[str, MockCollection] = {}
        self.get_all_calls: List[List[str]] = []

    def collection(self, name: str) -> MockCollection:
        if name not in self._collections:
            self._collections[name] = MockCollection(name)
        return self._collections[name]

    def get_all(self, refs):
        refs = list(refs)
        self.get_all_calls.append([ref.id for ref in refs])
        for ref in refs:
            yield ref.get()


@pytest.fixture
def mock_firestore():
    """Provides an empty mock Firestore client."""
    return MockFirestoreClient()


# ============================================================================
# GCS MOCKING
# ============================================================================

class MockBlob:
    """Mock GCS Blob object."""

    def __init__(self, name: str):
        self.name = name
        self.content: bytes = b""
        self.content_type: Optional[str] = None
        self.upload_count = 0

    def upload_from_string(self, data, content_type: str = None):
        self.content = data if isinstance(data, bytes) else data.encode()
        self.content_type = content_type
        self.upload_count += 1


class MockBucket:
    """Mock GCS Bucket object."""

    def __init__(self, name: str):
        self.name = name
        self._blobs: Dict[str, MockBlob] = {}

    def blob(self, blob_path: str) -> MockBlob:
        if blob_path not in self._blobs:
            self._blobs[blob_path] = MockBlob(blob_path)
        return self._blobs[blob_path]

    @property
    def blobs(self) -> Dict[str, MockBlob]:
        return self._blobs


class MockStorageClient:
    """Mock GCS Storage Client."""

    def __init__(self):
        self._buckets: Dict[str, MockBucket] = {}

    def bucket(self, bucket_name: str) -> MockBucket:
        if bucket_name not in self._buckets:
            self._buckets[bucket_name] = MockBucket(bucket_name)
        return self._buckets[bucket_name]


@pytest.fixture
def mock_storage_client():
    """Provides a mock GCS storage client."""
    return MockStorageClient()


# ============================================================================
# OPENAI MOCKING
# ============================================================================

class MockChatCompletions:
    """Mock OpenAI client.chat.completions."""

    def __init__(self, content: Optional[str] = "A sunlit beach at golden hour."):
        self.content = content
        self.calls: List[Dict[str, Any]] = []

    def create(self, **kwargs):
        self.calls.append(kwargs)
        if self.content is None:
            return SimpleNamespace(choices=[])
        message = SimpleNamespace(content=self.content)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


class MockEmbeddings:
    """Mock OpenAI client.embeddings returning constant vectors."""

    def __init__(self, dimensions: Optional[int] = None, error: Optional[Exception] = None):
        self.dimensions = dimensions
        self.error = error
        self.calls: List[Dict[str, Any]] = []

    def create(self, model: str, input: str, dimensions: int):
        self.calls.append({"model": model, "input": input, "dimensions": dimensions})
        if self.error:
            raise self.error
        size = self.dimensions or dimensions
        return SimpleNamespace(data=[SimpleNamespace(embedding=[0.1] * size)])


class MockOpenAIClient:
    """Mock openai.OpenAI."""

    def __init__(self, content: Optional[str] = "A sunlit beach at golden hour.",
                 embedding_dimensions: Optional[int] = None):
        self.chat = SimpleNamespace(completions=MockChatCompletions(content))
        self.embeddings = MockEmbeddings(embedding_dimensions)


@pytest.fixture
def mock_openai():
    """Provides a mock OpenAI client."""
    return MockOpenAIClient()


# ============================================================================
# REPLICATE MOCKING
# ============================================================================

class MockPredictions:
    """Mock replicate.Client.predictions."""

    def __init__(self, prediction_id: Optional[str] = "pred-123"):
        self.prediction_id = prediction_id
        self.calls: List[Dict[str, Any]] = []

    def create(self, **kwargs):
        self.calls.append(kwargs)
        if self.prediction_id is None:
            return None
        return SimpleNamespace(id=self.prediction_id, status="starting")


class MockReplicateClient:
    """Mock replicate.Client."""

    def __init__(self, prediction_id: Optional[str] = "pred-123"):
        self.predictions = MockPredictions(prediction_id)


@pytest.fixture
def mock_replicate():
    """Provides a mock Replicate client."""
    return MockReplicateClient()


# ============================================================================
# PINECONE MOCKING
# ============================================================================

class MockPineconeIndex:
    """Mock Pinecone Index."""

    def __init__(self, vectors: Optional[Dict[str, List[float]]] = None,
                 upsert_error: Optional[Exception] = None):
        self.vectors: Dict[str, List[float]] = dict(vectors or {})
        self.upsert_error = upsert_error
        self.upserts: List[Dict[str, Any]] = []
        self.queries: List[Dict[str, Any]] = []

    def upsert(self, vectors):
        if self.upsert_error:
            raise self.upsert_error
        for vector in vectors:
            self.upserts.append(vector)
            self.vectors[vector["id"]] = vector["values"]

    def fetch(self, ids):
        found = {
            vid: SimpleNamespace(id=vid, values=self.vectors[vid])
            for vid in ids if vid in self.vectors
        }
        return SimpleNamespace(vectors=found)

    def query(self, vector, top_k, include_metadata=False):
        self.queries.append({"vector": vector, "top_k": top_k})
        matches = [SimpleNamespace(id=vid, score=1.0) for vid in list(self.vectors)[:top_k]]
        return SimpleNamespace(matches=matches)


@pytest.fixture
def mock_pinecone_index():
    """Provides an empty mock Pinecone index."""
    return MockPineconeIndex()


# ============================================================================
# HTTP REQUEST MOCKING
# ============================================================================

class MockRequest:
    """Minimal stand-in for flask.Request."""

    def __init__(self, method: str = "POST", json_body: Optional[Dict[str, Any]] = None,
                 args: Optional[Dict[str, str]] = None):
        self.method = method
        self._json = json_body
        self.args = args or {}

    def get_json(self, silent: bool = False):
        return self._json


@pytest.fixture
def make_request():
    """Factory fixture building mock HTTP requests."""
    def _make(method: str = "POST", json_body=None, args=None) -> MockRequest:
        return MockRequest(method=method, json_body=json_body, args=args)
    return _make


# ============================================================================
# SAMPLE DATA FIXTURES
# ============================================================================

@pytest.fixture
def sample_videos():
    """Video documents keyed by id."""
    return {
        "A": {"id": "A", "description": "sunset", "title": "A"},
        "B": {"id": "B", "description": "traffic", "title": "B"},
        "C": {"id": "C", "title": "C"},
    }


@pytest.fixture
def seeded_firestore(mock_firestore, sample_videos):
    """Firestore seeded with sample videos and swipes for user u1."""
    videos = mock_firestore.collection("videos")
    for video_id, data in sample_videos.items():
        videos.add_doc(video_id, data)

    swipes = mock_firestore.collection("swipes")
    swipes.add_doc("s1", {"userId": "u1", "videoId": "A", "direction": "right", "createdAt": 1000})
    swipes.add_doc("s2", {"userId": "u1", "videoId": "B", "direction": "left", "createdAt": 2000})
    swipes.add_doc("s3", {"userId": "u2", "videoId": "A", "direction": "left", "createdAt": 3000})
    return mock_firestore


# ============================================================================
# ENVIRONMENT FIXTURES
# ============================================================================

@pytest.fixture
def env_local(monkeypatch):
    """Set environment to local mode."""
    monkeypatch.setenv("ENVIRONMENT", "local")
    monkeypatch.setenv("GOOGLE_CLOUD_PROJECT", "test-project")
    monkeypatch.setenv("STORAGE_BUCKET_NAME", "test-bucket")
    monkeypatch.setenv("OPENAI_API_KEY", "test-openai-key")
    monkeypatch.setenv("REPLICATE_API_KEY", "test-replicate-key")
    monkeypatch.setenv("PINECONE_API_KEY", "test-pinecone-key")


# ============================================================================
# FACTORY FIXTURES
# ============================================================================

@pytest.fixture
def make_openai():
    """Factory fixture for mock OpenAI clients with a given completion."""
    return MockOpenAIClient


@pytest.fixture
def make_replicate():
    """Factory fixture for mock Replicate clients with a given prediction id."""
    return MockReplicateClient


@pytest.fixture
def make_pinecone_index():
    """Factory fixture for mock Pinecone indexes."""
    return MockPineconeIndex
