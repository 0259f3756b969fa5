import json
import socket
from unittest.mock import MagicMock, patch

import paramiko
import pytest

from sysident.deploy import (
    DeploySession,
    DeployStatus,
    SshError,
    SshSession,
    get_addresses_to_try,
)

HOST_IP = "10.0.0.5"
ADDR_INFO = [(socket.AF_INET, socket.SOCK_STREAM, 6, "", (HOST_IP, 0))]


class _FakeFile:
    def __init__(self, store, path):
        self._store = store
        self._path = path
        store[path] = b""

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def write(self, data):
        self._store[self._path] += data


class _FakeSftp:
    def __init__(self):
        self.files = {}
        self.writes = 0

    def open(self, path, mode):
        return _FakeFile(self.files, path)

    def close(self):
        pass


def _mock_client(sftp):
    client = MagicMock()
    client.open_sftp.return_value = sftp
    transport = client.get_transport.return_value
    transport.is_active.return_value = True
    transport.open_session.return_value.recv.return_value = b""
    return client


def _executed(client):
    channel = client.get_transport.return_value.open_session.return_value
    return [call.args[0] for call in channel.exec_command.call_args_list]


def test_addresses_for_team_number():
    addresses = get_addresses_to_try(1234)
    assert addresses[0] == "roborio-1234-FRC.local"
    assert addresses[1] == "10.12.34.2"
    assert addresses[2] == "172.22.11.2"
    assert len(addresses) == 6
    assert all("1234" in a for a in addresses if a != "172.22.11.2" and not a.startswith("10."))


def test_team_number_expands_to_addresses():
    session = DeploySession("1234", True, {}, b"program", {})
    assert session.addresses == get_addresses_to_try(1234)


def test_host_name_is_used_directly():
    session = DeploySession(HOST_IP, False, {}, b"program", {})
    assert session.addresses == [HOST_IP]


def test_status_starts_in_progress():
    session = DeploySession(HOST_IP, False, {}, b"program", {})
    assert session.status is DeployStatus.IN_PROGRESS


@patch("sysident.deploy.socket.getaddrinfo", side_effect=socket.gaierror("no such host"))
def test_unresolvable_hosts_give_discovery_failure(_resolve):
    session = DeploySession("1234", True, {}, b"program", {})
    session.execute()
    assert session.status is DeployStatus.DISCOVERY_FAILURE


@patch("sysident.deploy.socket.getaddrinfo", return_value=ADDR_INFO)
@patch("sysident.deploy.paramiko.SSHClient")
def test_failed_connection_gives_discovery_failure(client_cls, _resolve):
    client = _mock_client(_FakeSftp())
    client.connect.side_effect = paramiko.AuthenticationException("denied")
    client_cls.return_value = client
    session = DeploySession(HOST_IP, False, {}, b"program", {})
    session.execute()
    assert session.status is DeployStatus.DISCOVERY_FAILURE
    assert _executed(client) == []


@patch("sysident.deploy.socket.getaddrinfo", return_value=ADDR_INFO)
@patch("sysident.deploy.paramiko.SSHClient")
def test_successful_deploy_uploads_files(client_cls, _resolve):
    sftp = _FakeSftp()
    client = _mock_client(sftp)
    client_cls.return_value = client
    config = {"gyro": "None", "is drivetrain": True}
    session = DeploySession(HOST_IP, True, config, b"\x7fELFprogram", {"libfoo.so": b"lib"})
    session.execute()

    assert session.status is DeployStatus.DONE
    assert sftp.files["/home/lvuser/frcUserProgram"] == b"\x7fELFprogram"
    assert sftp.files["/usr/local/frc/third-party/lib/libfoo.so"] == b"lib"
    assert json.loads(sftp.files["/home/lvuser/deploy/config.json"]) == config
    assert client.connect.call_args.args[0] == HOST_IP
    assert client.connect.call_args.kwargs["username"] == "admin"
    assert client.connect.call_args.kwargs["port"] == 22


@patch("sysident.deploy.socket.getaddrinfo", return_value=ADDR_INFO)
@patch("sysident.deploy.paramiko.SSHClient")
def test_deploy_runs_commands_in_order(client_cls, _resolve):
    client = _mock_client(_FakeSftp())
    client_cls.return_value = client
    session = DeploySession(HOST_IP, False, {}, b"program", {})
    session.execute()

    assert session.status is DeployStatus.DONE
    commands = _executed(client)
    assert "mkdir -p /home/lvuser/deploy" in commands
    assert commands.index("sync") < commands.index("ldconfig")
    assert "frcKillRobot.sh -t -r" in commands[-1]


@patch("sysident.deploy.paramiko.SSHClient")
def test_open_failure_raises_ssh_error(client_cls):
    client = _mock_client(_FakeSftp())
    client.connect.side_effect = OSError("timed out")
    client_cls.return_value = client
    session = SshSession(HOST_IP, 22, "admin", "")
    with pytest.raises(SshError, match="timed out"):
        session.open()


@patch("sysident.deploy.paramiko.SSHClient")
def test_execute_without_connection_raises(client_cls):
    client = MagicMock()
    client.get_transport.return_value = None
    client_cls.return_value = client
    session = SshSession(HOST_IP, 22, "admin", "")
    with pytest.raises(SshError):
        session.execute("ls")


@patch("sysident.deploy.paramiko.SSHClient")
def test_put_writes_large_contents_in_chunks(client_cls):
    sftp = _FakeSftp()
    written = []
    original_open = sftp.open

    def recording_open(path, mode):
        handle = original_open(path, mode)
        write = handle.write

        def record(data):
            written.append(len(data))
            write(data)

        handle.write = record
        return handle

    sftp.open = recording_open
    client_cls.return_value = _mock_client(sftp)
    contents = bytes(range(256)) * 1200
    with SshSession(HOST_IP, 22, "admin", "") as session:
        session.put("/tmp/blob", contents)

    assert sftp.files["/tmp/blob"] == contents
    assert len(written) > 1
    assert sum(written) == len(contents)


@patch("sysident.deploy.socket.getaddrinfo", return_value=ADDR_INFO)
@patch("sysident.deploy.paramiko.SSHClient")
def test_put_encodes_text(client_cls, _resolve):
    sftp = _FakeSftp()
    client_cls.return_value = _mock_client(sftp)
    config = {"a": 1, "name": "é"}
    session = DeploySession(HOST_IP, False, config, b"program", {})
    session.execute()

    assert session.status is DeployStatus.DONE
    uploaded = sftp.files["/home/lvuser/deploy/config.json"]
    assert json.loads(uploaded.decode("utf-8")) == config


@patch("sysident.deploy.paramiko.SSHClient")
def test_sftp_failure_raises_ssh_error(client_cls):
    client = _mock_client(_FakeSftp())
    client.open_sftp.side_effect = paramiko.SSHException("subsystem refused")
    client_cls.return_value = client
    session = SshSession(HOST_IP, 22, "admin", "")
    with pytest.raises(SshError, match="subsystem refused"):
        session.put("/tmp/x", b"data")