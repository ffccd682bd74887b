"""Pytest configuration and fixtures."""

import ftplib
import io
import posixpath
import sys
from pathlib import Path

import pytest

# Add the project root to the Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))


class FakeFTPServer:
    """In-memory state shared by every FakeFTP connection."""

    def __init__(self, user="test_user", password="test"):
        self.user = user
        self.password = password
        self.files = {}
        self.dirs = {""}
        self.mtime = "20240102030405"
        self.down_hosts = set()
        self.readonly = False
        self.connections = []

    def add_file(self, path, data):
        path = path.strip("/")
        parts = path.split("/")[:-1]
        for i in range(1, len(parts) + 1):
            self.dirs.add("/".join(parts[:i]))
        self.files[path] = data


class FakeFTP:
    """Just enough of ftplib.FTP for the FTP backend."""

    def __init__(self, server):
        self.server = server
        self.cwd_path = ""
        self.host = None
        self.closed = False
        server.connections.append(self)

    def _abs(self, path):
        if path.startswith("/"):
            joined = path
        else:
            joined = posixpath.join(self.cwd_path, path)
        normalized = posixpath.normpath(joined.strip("/")) if joined.strip("/") else ""
        return "" if normalized == "." else normalized

    def connect(self, host, port=21, timeout=None):
        if host in self.server.down_hosts:
            raise OSError(f"Connection refused: {host}")
        self.host = host
        return "220 Welcome"

    def login(self, user="", passwd=""):
        if (user, passwd) != (self.server.user, self.server.password):
            raise ftplib.error_perm("530 Login incorrect.")
        return "230 Logged in"

    def voidcmd(self, cmd):
        return "200 OK"

    def pwd(self):
        return "/" + self.cwd_path

    def cwd(self, path):
        target = self._abs(path)
        if target not in self.server.dirs:
            raise ftplib.error_perm(f"550 {path}: No such directory")
        self.cwd_path = target
        return "250 OK"

    def mkd(self, path):
        target = self._abs(path)
        if posixpath.dirname(target) not in self.server.dirs:
            raise ftplib.error_perm(f"550 {path}: No such directory")
        self.server.dirs.add(target)
        return "/" + target

    def size(self, path):
        target = self._abs(path)
        if target not in self.server.files:
            raise ftplib.error_perm(f"550 {path}: not a plain file")
        return len(self.server.files[target])

    def sendcmd(self, cmd):
        verb, _, arg = cmd.partition(" ")
        if verb == "MDTM":
            if self._abs(arg) not in self.server.files:
                raise ftplib.error_perm(f"550 {arg}: No such file")
            return "213 " + self.server.mtime
        raise ftplib.error_perm(f"502 {verb} not implemented")

    def retrbinary(self, cmd, callback, blocksize=8192, rest=None):
        target = self._abs(cmd[len("RETR "):])
        if target not in self.server.files:
            raise ftplib.error_perm("550 No such file")
        callback(self.server.files[target])
        return "226 Transfer complete"

    def storbinary(self, cmd, fp, blocksize=8192, callback=None, rest=None):
        target = self._abs(cmd[len("STOR "):])
        if self.server.readonly:
            raise ftplib.error_perm("553 Permission denied")
        if posixpath.dirname(target) not in self.server.dirs:
            raise ftplib.error_perm("553 Could not create file")
        self.server.files[target] = fp.read()
        return "226 Transfer complete"

    def delete(self, path):
        target = self._abs(path)
        if target not in self.server.files:
            raise ftplib.error_perm(f"550 {path}: No such file")
        del self.server.files[target]
        return "250 Deleted"

    def mlsd(self, path="", facts=None):
        target = self._abs(path)
        if target not in self.server.dirs:
            raise ftplib.error_perm(f"550 {path}: No such directory")
        entries = [(".", {"type": "cdir"}), ("..", {"type": "pdir"})]
        for d in sorted(self.server.dirs):
            if d and posixpath.dirname(d) == target:
                entries.append((posixpath.basename(d), {"type": "dir"}))
        for f in sorted(self.server.files):
            if posixpath.dirname(f) == target:
                entries.append(
                    (posixpath.basename(f), {"type": "file", "modify": self.server.mtime})
                )
        return entries

    def quit(self):
        self.closed = True
        return "221 Goodbye"

    def close(self):
        self.closed = True


@pytest.fixture
def ftp_server(monkeypatch):
    """Replace ftplib.FTP with an in-memory fake and return its server state."""
    server = FakeFTPServer()
    monkeypatch.setattr(ftplib, "FTP", lambda: FakeFTP(server))
    return server


@pytest.fixture
def ftp_storage(ftp_server):
    """FTP storage rooted at root/dir on the fake server."""
    from objstore.backends.ftp import FTPStorage

    storage = FTPStorage(
        ["localhost:21"],
        root_dir="root/dir",
        user="test_user",
        password="test",
    )
    yield storage
    storage.close()


@pytest.fixture
def fs_storage(tmp_path):
    """Filesystem storage rooted at a temporary directory."""
    from objstore.backends.filesystem import FileSystemStorage

    return FileSystemStorage(tmp_path / "root")


@pytest.fixture
def aws_credentials(monkeypatch):
    """Mocked AWS Credentials for moto."""
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", "testing")
    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "testing")
    monkeypatch.setenv("AWS_SECURITY_TOKEN", "testing")
    monkeypatch.setenv("AWS_SESSION_TOKEN", "testing")
    monkeypatch.setenv("AWS_DEFAULT_REGION", "us-east-1")


@pytest.fixture
def s3_bucket(aws_credentials):
    """Create a mocked S3 bucket and yield its name."""
    import boto3
    from moto import mock_aws

    with mock_aws():
        client = boto3.client("s3", region_name="us-east-1")
        client.create_bucket(Bucket="test-bucket")
        yield "test-bucket"


@pytest.fixture
def s3_storage(s3_bucket):
    """S3 storage under the 'root' prefix of the mocked bucket."""
    from objstore.backends.s3 import S3Storage

    return S3Storage(bucket=s3_bucket, prefix="root")


@pytest.fixture(params=["fs", "ftp", "s3"])
def storage(request):
    """Each built-in backend in turn."""
    return request.getfixturevalue(f"{request.param}_storage")


@pytest.fixture
def stream():
    """A seekable stream whose position is not at the start."""
    buf = io.BytesIO(b"streamed content")
    buf.seek(5)
    return buf
