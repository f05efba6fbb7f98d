"""Firebase adapters against recording stand-ins for the SDK clients."""
from types import SimpleNamespace

import pytest
from firebase_admin import auth, firestore
from firebase_admin import exceptions as firebase_exceptions

from internquest.core.firebase import identity
from internquest.core.firebase.documents import FirestoreDocumentStore
from internquest.core.firebase.exceptions import IdentityProviderError
from internquest.core.store import DELETE_FIELD, SERVER_TIMESTAMP


# ─────────────────────────────────────────────────────────────────────────────
# Identity provider
# ─────────────────────────────────────────────────────────────────────────────
@pytest.mark.parametrize(
    "exc,code",
    [
        (auth.EmailAlreadyExistsError("taken", None, None), "auth/email-already-exists"),
        (auth.UserNotFoundError("missing"), "auth/user-not-found"),
        (ValueError('Invalid email: "nope"'), "auth/invalid-email"),
        (ValueError("Invalid password string"), "auth/invalid-argument"),
        (firebase_exceptions.FirebaseError("INTERNAL", "backend"), "auth/internal"),
        (RuntimeError("socket closed"), "auth/unknown"),
    ],
)
def test_translate(exc, code):
    assert identity._translate(exc).code == code


def test_create_user_passes_only_given_fields(monkeypatch):
    calls = []

    def _create_user(app=None, **kwargs):
        calls.append(kwargs)
        return SimpleNamespace(uid="new-uid")

    monkeypatch.setattr(auth, "create_user", _create_user)
    provider = identity.FirebaseIdentityProvider(app=None)

    assert provider.create_user("a@neu.edu.ph") == "new-uid"
    provider.create_user("b@neu.edu.ph", password="secret1", display_name="B")

    assert calls[0] == {"email": "a@neu.edu.ph", "email_verified": False, "disabled": False}
    assert calls[1]["password"] == "secret1"
    assert calls[1]["display_name"] == "B"


def test_provider_errors_are_translated(monkeypatch):
    def _missing(uid, app=None):
        raise auth.UserNotFoundError("No user record found")

    monkeypatch.setattr(auth, "get_user", _missing)
    with pytest.raises(IdentityProviderError) as exc:
        identity.FirebaseIdentityProvider().get_user("ghost")
    assert exc.value.code == "auth/user-not-found"


def test_password_setup_link_uses_continue_url(monkeypatch):
    seen = {}

    def _link(email, action_code_settings=None, app=None):
        seen["settings"] = action_code_settings
        return "https://link"

    monkeypatch.setattr(auth, "generate_password_reset_link", _link)
    provider = identity.FirebaseIdentityProvider()

    assert provider.generate_password_setup_link("a@neu.edu.ph", "https://admin.internquest.app") == "https://link"
    assert seen["settings"].url == "https://admin.internquest.app"
    provider.generate_password_setup_link("a@neu.edu.ph")
    assert seen["settings"] is None


def test_user_record_to_dict(monkeypatch):
    record = SimpleNamespace(uid="u", email="u@neu.edu.ph", display_name=None, disabled=False,
                             custom_claims=None)
    monkeypatch.setattr(auth, "get_user_by_email", lambda email, app=None: record)
    assert identity.FirebaseIdentityProvider().get_user_by_email("u@neu.edu.ph") == {
        "uid": "u", "email": "u@neu.edu.ph", "displayName": None, "disabled": False, "customClaims": {},
    }


# ─────────────────────────────────────────────────────────────────────────────
# Document store
# ─────────────────────────────────────────────────────────────────────────────
class _Snapshot:
    def __init__(self, doc_id, data):
        self.id = doc_id
        self._data = data
        self.exists = data is not None

    def to_dict(self):
        return self._data


class _Query:
    def __init__(self, log, results=()):
        self.log = log
        self.results = list(results)

    def where(self, filter=None):
        self.log.append(("where", filter.field_path, filter.op_string, filter.value))
        return self

    def order_by(self, field_path):
        self.log.append(("order_by", field_path))
        return self

    def limit(self, count):
        self.log.append(("limit", count))
        return self

    def start_after(self, cursor):
        self.log.append(("start_after", cursor["__name__"].id))
        return self

    def get(self):
        return self.results


class _DocRef:
    def __init__(self, log, doc_id, data=None):
        self.log = log
        self.id = doc_id
        self.data = data

    def get(self):
        return _Snapshot(self.id, self.data)

    def set(self, data, merge=False):
        self.log.append(("set", self.id, data, merge))


class _Collection(_Query):
    def __init__(self, log, docs=None, results=()):
        super().__init__(log, results)
        self.docs = docs or {}

    def document(self, doc_id):
        return _DocRef(self.log, doc_id, self.docs.get(doc_id))


class _Batch:
    def __init__(self, log):
        self.log = log

    def update(self, ref, data):
        self.log.append(("update", ref.id, data))

    def commit(self):
        self.log.append(("commit",))


class _Client:
    def __init__(self, docs=None, results=()):
        self.log = []
        self._collection = _Collection(self.log, docs, results)

    def collection(self, name):
        self.log.append(("collection", name))
        return self._collection

    def batch(self):
        return _Batch(self.log)


def test_get_missing_and_present():
    store = FirestoreDocumentStore(_Client(docs={"u1": {"email": "a"}}))
    assert store.get("users", "u1") == {"email": "a"}
    assert store.get("users", "u2") is None


def test_set_translates_sentinels():
    client = _Client()
    FirestoreDocumentStore(client).set("users", "u1", {"a": DELETE_FIELD, "b": SERVER_TIMESTAMP, "c": 1}, merge=True)
    _, doc_id, data, merge = client.log[-1]
    assert doc_id == "u1" and merge is True
    assert data == {"a": firestore.DELETE_FIELD, "b": firestore.SERVER_TIMESTAMP, "c": 1}


def test_find_first_limits_to_one():
    client = _Client(results=[_Snapshot("u1", {"studentId": "1"})])
    doc = FirestoreDocumentStore(client).find_first("users", "studentId", "1")
    assert (doc.id, doc.data) == ("u1", {"studentId": "1"})
    assert ("where", "studentId", "==", "1") in client.log
    assert ("limit", 1) in client.log


def test_where_in_skips_empty_values():
    client = _Client()
    assert FirestoreDocumentStore(client).where_in("users", "role", []) == []
    assert client.log == []


def test_page_by_id_uses_keyset_cursor():
    client = _Client(results=[_Snapshot("b", {}), _Snapshot("c", None)])
    page = FirestoreDocumentStore(client).page_by_id("users", 2, start_after="a")
    assert [doc.id for doc in page] == ["b", "c"]
    assert page[1].data == {}
    assert ("start_after", "a") in client.log
    assert ("limit", 2) in client.log


def test_commit_updates_single_batch():
    client = _Client()
    FirestoreDocumentStore(client).commit_updates("users", {"a": {"x": DELETE_FIELD}, "b": {"y": 1}})
    updates = [entry for entry in client.log if entry[0] in ("update", "commit")]
    assert updates == [("update", "a", {"x": firestore.DELETE_FIELD}), ("update", "b", {"y": 1}), ("commit",)]


def test_commit_updates_noop():
    client = _Client()
    FirestoreDocumentStore(client).commit_updates("users", {})
    assert client.log == []
