"""
dylive - Live Status Checker
Polls Douyin handles and reports every new live session exactly once.
"""

import asyncio
import logging
import re
import shlex
import subprocess
import time
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional

import psutil

from .douyin_api import ensure_manifest, get_room
from .douyin_client import DouyinClient
from .errors import DyliveError
from .models import Room
from .stream_resolver import StreamFormat

logger = logging.getLogger(__name__)

_DURATION_PATTERN = re.compile(r'^\s*(\d+(?:\.\d+)?)\s*(ms|s|m|h)\s*$')
_DURATION_UNITS = {'ms': 0.001, 's': 1, 'm': 60, 'h': 3600}


def parse_duration(text: str, minimum: float = 1.0) -> float:
    """
    Parse "500ms", "5s", "2m" or "1h" into seconds.

    Raises:
        ValueError: malformed, or shorter than minimum seconds
    """
    match = _DURATION_PATTERN.match(text or "")
    if not match:
        raise ValueError(f"invalid duration: {text!r}")
    seconds = float(match.group(1)) * _DURATION_UNITS[match.group(2)]
    if seconds < minimum:
        raise ValueError(f"duration must not be less than {minimum:g} second(s)")
    return seconds


def template_fields(room: Room) -> Dict[str, object]:
    user = room.user
    return {
        'id': room.id,
        'douyin_id': room.douyin_id,
        'title': room.title,
        'page_url': room.page_url,
        'stream_url': room.stream_url,
        'nickname': user.nickname if user else "",
        'sec_uid': user.sec_uid if user else "",
        'timestamp': int(time.time()),
    }


class CommandRunner:
    """
    Runs a shell command template for live rooms and tracks the processes.

    Templates use str.format fields, e.g. "mpv --title={nickname} {stream_url}".
    Every field is shell-quoted, so templates must not add quotes of their own.
    A template starting with "@" is read from that file.
    """

    def __init__(self, template: str):
        if len(template) > 1 and template.startswith("@"):
            template = Path(template[1:]).read_text(encoding='utf-8')
        self.template = template.strip()
        self._processes: Dict[str, subprocess.Popen] = {}

    def render(self, room: Room) -> str:
        fields = {key: shlex.quote(str(value)) for key, value in template_fields(room).items()}
        return self.template.format(**fields)

    def run(self, room: Room) -> Optional[int]:
        """Start the command for a room. Returns the PID, None if nothing ran."""
        if not self.template:
            return None
        try:
            command = self.render(room)
        except (KeyError, IndexError, ValueError) as e:
            logger.error(f"Invalid command template: {e}")
            return None
        if not command:
            return None

        try:
            proc = subprocess.Popen(command, shell=True)
        except OSError as e:
            logger.error(f"Command {command!r} failed to start: {e}")
            return None

        logger.info(f"Command {command!r} started as PID {proc.pid}")
        self._processes[room.id] = proc
        return proc.pid

    def has_process(self, room_id: str) -> bool:
        return room_id in self._processes

    def is_running(self, room_id: str) -> bool:
        """Whether the process started for room_id is still alive."""
        proc = self._processes.get(room_id)
        if proc is None:
            return False

        returncode = proc.poll()
        if returncode is not None:
            logger.info(f"Process {proc.pid} exited with code {returncode}")
            return False

        try:
            return psutil.Process(proc.pid).status() != psutil.STATUS_ZOMBIE
        except psutil.NoSuchProcess:
            return False

    def stop_all(self) -> None:
        """Terminate every tracked process and its children."""
        for room_id, proc in list(self._processes.items()):
            try:
                parent = psutil.Process(proc.pid)
                for child in parent.children(recursive=True):
                    child.terminate()
                parent.terminate()
            except psutil.NoSuchProcess:
                pass
            del self._processes[room_id]


class LiveChecker:
    """
    Background service for checking live status of Douyin handles.

    A failed fetch is logged and the handle is checked again next cycle.
    """

    def __init__(self, client: DouyinClient, douyin_ids: Iterable[str],
                 quality: str = "",
                 stream_format: StreamFormat = StreamFormat.FLV,
                 on_live: Optional[Callable[[Room], None]] = None,
                 runner: Optional[CommandRunner] = None,
                 check_command: bool = False):
        self.client = client
        self.douyin_ids = [d.strip() for d in douyin_ids if d and d.strip()]
        self.quality = quality
        self.stream_format = stream_format
        self.on_live = on_live
        self.runner = runner
        self.check_command = check_command

        self._current_rooms: Dict[str, str] = {}
        self._announced: set = set()
        self._running = False

    def _with_stream_url(self, room: Room) -> Room:
        return room.model_copy(update={"stream_url": room.url_for(self.quality, self.stream_format)})

    async def _fetch(self, douyin_id: str) -> Room:
        room = await get_room(self.client, douyin_id)
        if room.operating and not room.has_manifest:
            room = await ensure_manifest(self.client, room)
        return room

    async def check_once(self) -> List[Room]:
        """
        Check every handle once.

        Returns:
            Rooms that went live since the previous check.
        """
        went_live = []

        for douyin_id in self.douyin_ids:
            try:
                room = await self._fetch(douyin_id)
            except DyliveError as e:
                logger.error(f"{douyin_id}: {e}")
                continue

            name = room.user.nickname if room.user else douyin_id
            key = room.user.key if room.user and room.user.key else douyin_id
            if key not in self._announced:
                logger.info(f"Checking live stream of {name} ({douyin_id})")
                self._announced.add(key)

            if self._current_rooms.get(key) == room.id:
                if self._needs_restart(room):
                    logger.info(f"Process for room {room.id} exited, restart")
                    self.runner.run(self._with_stream_url(room))
                continue

            self._current_rooms[key] = room.id
            if not room.operating:
                logger.info(f"{name} ({douyin_id}) hasn't started livestream yet.")
                continue

            logger.info(f"🟢 {name} ({douyin_id}) is live.")
            room = self._with_stream_url(room)
            went_live.append(room)

            if self.on_live:
                self.on_live(room)
            if self.runner:
                self.runner.run(room)

        return went_live

    def _needs_restart(self, room: Room) -> bool:
        return (
            self.check_command
            and self.runner is not None
            and room.operating
            and self.runner.has_process(room.id)
            and not self.runner.is_running(room.id)
        )

    async def run(self, interval: float) -> None:
        """Check forever, sleeping interval seconds between cycles."""
        self._running = True
        logger.info(f"▶️ Watching {len(self.douyin_ids)} handle(s) every {interval:g}s")
        while self._running:
            await self.check_once()
            await asyncio.sleep(interval)

    def stop(self) -> None:
        self._running = False
