"""Deployment of the characterization program to a robot controller over SSH."""

from __future__ import annotations

import enum
import json
import logging
import re
import socket
import threading
from collections.abc import Mapping
from concurrent.futures import ThreadPoolExecutor
from typing import Any

import paramiko

logger = logging.getLogger(__name__)

#: SSH port of the robot controller.
PORT = 22
#: Account used for deployment.
USERNAME = "admin"
#: The deployment account has no password.
PASSWORD = ""

#: Seconds to wait for an SSH connection.
CONNECT_TIMEOUT = 3.0

_CHUNK_SIZE = 150_000
_READ_SIZE = 512

_PROGRAM_PATH = "/home/lvuser/frcUserProgram"
_CONFIG_PATH = "/home/lvuser/deploy/config.json"
_LIBRARY_DIR = "/usr/local/frc/third-party/lib/"

_PRE_DEPLOY_COMMANDS = (
    # Trims parts of the LabVIEW runtime that are not needed, saving memory.
    "sed -i -e 's/^StartupDLLs/;StartupDLLs/' /etc/natinst/share/ni-rt.ini",
    "sed -i -e 's/\"exec /\"/' /usr/local/frc/bin/frcRunRobot.sh",
    ". /etc/profile.d/natinst-path.sh; /usr/local/frc/bin/frcKillRobot.sh -t 2> /dev/null",
    'rm -f "/home/lvuser/frcUserProgram"',
    "mkdir -p /home/lvuser/deploy",
    "chmod -R 777 /home/lvuser/deploy || true; chown -R admin:ni /home/lvuser/deploy",
)

_POST_DEPLOY_COMMANDS = (
    "chmod -R 777 /home/lvuser/deploy || true; chown -R lvuser:ni /home/lvuser/deploy",
    "chmod -R 777 /usr/local/frc/third-party/lib || true; "
    "chown -R lvuser:ni /usr/local/frc/third-party/lib",
    "echo ' \"/home/lvuser/frcUserProgram\" ' > /home/lvuser/robotCommand",
    "chmod +x /home/lvuser/robotCommand; chown lvuser /home/lvuser/robotCommand",
    'chmod +x "/home/lvuser/frcUserProgram"; chown lvuser "/home/lvuser/frcUserProgram"',
    'setcap cap_sys_nice+eip "/home/lvuser/frcUserProgram"',
    "sync",
    "ldconfig",
    ". /etc/profile.d/natinst-path.sh; /usr/local/frc/bin/frcKillRobot.sh -t -r 2> /dev/null",
)

_TEAM_NUMBER = re.compile(r"[+-]?[0-9]+")

# Only one deployment runs at a time, across all sessions.
_EXECUTE_LOCK = threading.Lock()


class SshError(Exception):
    """An SSH or SFTP operation failed."""


def _as_bytes(contents: bytes | str) -> bytes:
    return contents.encode("utf-8") if isinstance(contents, str) else bytes(contents)


class SshSession:
    """A password-authenticated SSH connection to one host."""

    def __init__(self, host: str, port: int, user: str, password: str) -> None:
        self.host = host
        self.port = port
        self.user = user
        self.password = password
        self._client = paramiko.SSHClient()
        # Robot controllers are re-imaged often, so host keys are not checked.
        self._client.set_missing_host_key_policy(paramiko.AutoAddPolicy())

    def __enter__(self) -> SshSession:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def open(self) -> None:
        """Connect and authenticate."""
        try:
            self._client.connect(
                self.host,
                port=self.port,
                username=self.user,
                password=self.password,
                timeout=CONNECT_TIMEOUT,
                allow_agent=False,
                look_for_keys=False,
            )
        except (paramiko.SSHException, OSError) as exc:
            raise SshError(str(exc) or type(exc).__name__) from exc

    def _transport(self) -> paramiko.Transport:
        transport = self._client.get_transport()
        if transport is None or not transport.is_active():
            raise SshError("The SSH session is not open.")
        return transport

    def execute(self, cmd: str) -> None:
        """Run a shell command on the remote host."""
        transport = self._transport()
        try:
            channel = transport.open_session()
        except (paramiko.SSHException, OSError) as exc:
            raise SshError(str(exc) or type(exc).__name__) from exc
        try:
            channel.exec_command(cmd)
            logger.info("%s", cmd)
            output = channel.recv(_READ_SIZE)
            if output:
                logger.info("%s", output.decode("utf-8", errors="replace"))
        except (paramiko.SSHException, OSError) as exc:
            raise SshError(str(exc) or type(exc).__name__) from exc
        finally:
            channel.close()

    def put(self, path: str, contents: bytes | str) -> None:
        """Write ``contents`` to the remote file ``path``, replacing it."""
        data = _as_bytes(contents)
        try:
            sftp = self._client.open_sftp()
        except (paramiko.SSHException, OSError) as exc:
            raise SshError(str(exc) or type(exc).__name__) from exc
        try:
            with sftp.open(path, "wb") as remote:
                for start in range(0, len(data), _CHUNK_SIZE):
                    remote.write(data[start:start + _CHUNK_SIZE])
        except (paramiko.SSHException, OSError) as exc:
            raise SshError(str(exc) or type(exc).__name__) from exc
        finally:
            sftp.close()
        logger.info("[SFTP] Deployed %s!", path)

    def close(self) -> None:
        """Disconnect."""
        self._client.close()


class DeployStatus(enum.Enum):
    """Progress of a deployment."""

    IN_PROGRESS = "in progress"
    DONE = "done"
    DISCOVERY_FAILURE = "discovery failure"


def get_addresses_to_try(team: int) -> list[str]:
    """Return the host names and addresses a team's controller may have."""
    # Truncating division, so that negative numbers split like positive ones.
    high = int(team / 100)
    low = team - high * 100
    return [
        # Connected to a radio or over USB.
        f"roborio-{team}-FRC.local",
        f"10.{high}.{low}.2",
        "172.22.11.2",
        # Home networks, practice fields and the like.
        f"roborio-{team}-FRC",
        f"roborio-{team}-FRC.lan",
        f"roborio-{team}.frc-field.local",
    ]


class DeploySession:
    """Finds a robot controller and installs a program and its config on it.

    ``team`` is either a team number or a host name or address. ``program``
    is the executable to install; ``libraries`` maps library file names to
    their contents.
    """

    def __init__(
        self,
        team: str,
        drive: bool,
        config: Any,
        program: bytes | str,
        libraries: Mapping[str, bytes | str],
    ) -> None:
        self.drive = drive
        self.config = config
        self.program = program
        self.libraries = dict(libraries)
        if _TEAM_NUMBER.fullmatch(team):
            self.addresses = get_addresses_to_try(int(team))
        else:
            self.addresses = [team]
        self._lock = threading.Lock()
        self._visited = 0
        self._connected = False

    @property
    def status(self) -> DeployStatus:
        """Whether the deployment is still running, finished or found nothing."""
        with self._lock:
            if self._visited < len(self.addresses):
                return DeployStatus.IN_PROGRESS
            return DeployStatus.DONE if self._connected else DeployStatus.DISCOVERY_FAILURE

    def execute(self) -> None:
        """Try every address; the first to accept an SSH connection is deployed to."""
        with _EXECUTE_LOCK, ThreadPoolExecutor(max_workers=max(1, len(self.addresses))) as pool:
            for future in [pool.submit(self._visit, host) for host in self.addresses]:
                future.result()

    def _mark_visited(self) -> None:
        with self._lock:
            self._visited += 1

    def _visit(self, host: str) -> None:
        logger.info("Attempting to resolve %s hostname.", host)
        try:
            infos = socket.getaddrinfo(host, None, socket.AF_INET, socket.SOCK_STREAM)
            ip = infos[0][4][0]
        except (OSError, IndexError) as exc:
            self._mark_visited()
            logger.info("Could not resolve %s: %s.", host, exc)
            return
        logger.info("Resolved %s to %s.", host, ip)
        try:
            self._try_deploy(host, ip)
        finally:
            self._mark_visited()

    def _try_deploy(self, host: str, ip: str) -> None:
        logger.info("Trying to establish SSH connection to %s.", host)
        # Another address already connected: no need for a second connection.
        with self._lock:
            if self._connected:
                return
        try:
            with SshSession(ip, PORT, USERNAME, PASSWORD) as session:
                session.open()
                logger.info("SSH connection to %s was successful.", host)
                with self._lock:
                    if self._connected:
                        return
                    self._connected = True
                logger.info("roboRIO Connected!")
                try:
                    self._deploy(session)
                    logger.info("Deploy Complete!")
                except SshError as exc:
                    logger.error("An exception occurred: %s", exc)
        except SshError:
            logger.info("SSH connection to %s failed.", host)

    def _deploy(self, session: SshSession) -> None:
        for command in _PRE_DEPLOY_COMMANDS:
            session.execute(command)
        for name, contents in self.libraries.items():
            session.put(_LIBRARY_DIR + name, contents)
        session.put(_PROGRAM_PATH, self.program)
        session.put(_CONFIG_PATH, json.dumps(self.config, separators=(",", ":"), sort_keys=True))
        for command in _POST_DEPLOY_COMMANDS:
            session.execute(command)