import os
import tempfile
import time

# Set env vars before any project import reads config
os.environ['PROBLEM_LOCK_TOKEN_SECRET'] = 'test-lock-secret'
os.environ['SUPABASE_JWT_SECRET'] = 'test-jwt-secret'
os.environ['STORAGE_PUBLIC_BASE_URL'] = 'https://storage.test/foundathon-presentation'
os.environ['STORAGE_REGION'] = 'us-east-1'
os.environ['STORAGE_ACCESS_KEY_ID'] = 'test'
os.environ['STORAGE_SECRET_ACCESS_KEY'] = 'test'
os.environ['DB_PASSWORD'] = 'dummy'

import pytest
from jose import jwt
from pony.orm import db_session

from errors import StorageError
from models import db, Registration
from schemas import parse_team_submission

# Bind to SQLite
DB_FILE = os.path.join(tempfile.mkdtemp(), 'test.sqlite')
db.bind(provider='sqlite', filename=DB_FILE, create_db=True)
db.generate_mapping(create_tables=True)

USER_ID = "user-1"
OTHER_USER_ID = "user-2"


class FakeStorage:
    """In-memory stand-in for PresentationStorage."""

    public_base_url = "https://storage.test/foundathon-presentation"

    def __init__(self):
        self.objects = {}
        self.object_info = {}
        self.removed = []
        self.upload_error = None
        self.list_error = None
        self.stat_error = None

    def upload(self, key, data, content_type=None, file_name=None):
        if self.upload_error:
            raise self.upload_error
        if key in self.objects:
            raise StorageError("The resource already exists", code="Duplicate")
        self.objects[key] = data
        self.object_info[key] = {"content_type": content_type, "file_name": file_name}

    def stat(self, key):
        if self.stat_error:
            raise self.stat_error
        if key not in self.objects:
            raise StorageError("Not Found", code="404")
        info = self.object_info.get(key, {})
        return {
            "size": len(self.objects[key]),
            "content_type": info.get("content_type"),
            "file_name": info.get("file_name"),
        }

    def list(self, prefix):
        if self.list_error:
            raise self.list_error
        prefix = prefix.rstrip("/") + "/"
        return [
            key[len(prefix):] for key in self.objects
            if key.startswith(prefix) and "/" not in key[len(prefix):]
        ]

    def get_public_url(self, key):
        return f"{self.public_base_url}/{key}"

    def storage_path_from_public_url(self, url):
        prefix = self.public_base_url + "/"
        if isinstance(url, str) and url.startswith(prefix):
            return url[len(prefix):]
        return None

    def remove(self, keys):
        for key in keys:
            self.removed.append(key)
            self.objects.pop(key, None)


def srm_payload(team_name="Null Pointers"):
    return {
        "teamType": "srm",
        "teamName": team_name,
        "lead": {
            "name": "Asha Rao",
            "raNumber": "ra2211003010001",
            "netId": "ar1234@srmist.edu.in",
            "dept": "CSE",
            "contact": 9876543210,
        },
        "members": [
            {"name": "Bala K", "raNumber": "RA2211003010002", "netId": "bk5678", "dept": "CSE", "contact": 9876543211},
            {"name": "Chitra M", "raNumber": "RA2211003010003", "netId": "cm9012", "dept": "ECE", "contact": 9876543212},
        ],
    }


def non_srm_payload(team_name="Outsiders"):
    return {
        "teamType": "non_srm",
        "teamName": team_name,
        "collegeName": "City College",
        "isClub": False,
        "clubName": "",
        "lead": {"name": "Dev P", "collegeId": "CC-01", "collegeEmail": "dev@city.edu", "contact": 9123456780},
        "members": [
            {"name": "Esha Q", "collegeId": "CC-02", "collegeEmail": "esha@city.edu", "contact": 9123456781},
            {"name": "Farah R", "collegeId": "CC-03", "collegeEmail": "farah@city.edu", "contact": 9123456782},
        ],
    }


def access_token(user_id=USER_ID, email="lead@example.com"):
    claims = {"sub": user_id, "email": email, "aud": "authenticated", "exp": int(time.time()) + 3600}
    return jwt.encode(claims, 'test-jwt-secret', algorithm='HS256')


@pytest.fixture(autouse=True)
def clean_db():
    with db_session:
        Registration.select().delete(bulk=True)
    yield


@pytest.fixture
def fake_storage():
    return FakeStorage()


@pytest.fixture
def srm_team():
    submission, error = parse_team_submission(srm_payload())
    assert error is None
    return submission


@pytest.fixture
def non_srm_team():
    submission, error = parse_team_submission(non_srm_payload())
    assert error is None
    return submission
