"""
Local media capture.

A small MediaStream container over aiortc tracks plus the capture devices
that produce them. PlayerMediaDevices grabs the screen and microphone via
FFmpeg (aiortc's MediaPlayer); tests substitute any object implementing
MediaDevices.

Dependencies: aiortc, av
System role: Outbound media source for the Peer Connection Manager
"""

import asyncio
import logging
import os
import sys
import uuid
from dataclasses import dataclass
from typing import Protocol

from aiortc import MediaStreamTrack
from aiortc.contrib.media import MediaPlayer
from av.error import FFmpegError

from livedesk.configs.webrtc import WebRTCSettings
from livedesk.core.exceptions import (
    MediaAcquisitionError,
    MediaPermissionDeniedError,
    MediaUnsupportedError,
)

logger = logging.getLogger(__name__)


class MediaStream:
    """Ordered set of audio/video tracks shared under one stream id."""

    def __init__(self, tracks: list[MediaStreamTrack] | None = None, id: str | None = None) -> None:
        self.id = id or str(uuid.uuid4())
        self._tracks: list[MediaStreamTrack] = []
        for track in tracks or []:
            self.add_track(track)

    def add_track(self, track: MediaStreamTrack) -> None:
        if track not in self._tracks:
            self._tracks.append(track)

    def remove_track(self, track: MediaStreamTrack) -> None:
        if track in self._tracks:
            self._tracks.remove(track)

    def get_tracks(self) -> list[MediaStreamTrack]:
        return list(self._tracks)

    def get_video_tracks(self) -> list[MediaStreamTrack]:
        return [t for t in self._tracks if t.kind == "video"]

    def get_audio_tracks(self) -> list[MediaStreamTrack]:
        return [t for t in self._tracks if t.kind == "audio"]

    def stop(self) -> None:
        """Stop every track."""
        for track in self._tracks:
            track.stop()

    def __len__(self) -> int:
        return len(self._tracks)

    def __repr__(self) -> str:
        kinds = ",".join(t.kind for t in self._tracks)
        return f"MediaStream(id={self.id!r}, tracks=[{kinds}])"


@dataclass(frozen=True)
class AudioConstraints:
    """Microphone processing requested from the capture device."""

    echo_cancellation: bool = True
    noise_suppression: bool = True
    auto_gain_control: bool = True


class MediaDevices(Protocol):
    """Capture devices the peer connection manager acquires media from."""

    async def get_display_media(self, include_audio: bool = True) -> MediaStream:
        """Screen capture (video, plus audio when the platform offers it)."""
        ...

    async def get_user_media(self, constraints: AudioConstraints) -> MediaStream:
        """Microphone capture."""
        ...


class PlayerMediaDevices:
    """
    FFmpeg-backed capture devices.

    Screen: x11grab (Linux), avfoundation (macOS), gdigrab (Windows).
    Microphone: pulse (Linux), avfoundation (macOS), dshow (Windows).
    With echo cancellation requested on Linux, the configured PulseAudio
    echo-cancel source is used; noise suppression and gain control are
    left to that source's module-echo-cancel processing.
    """

    def __init__(self, settings: WebRTCSettings | None = None, platform: str | None = None) -> None:
        self.settings = settings or WebRTCSettings()
        self.platform = platform or sys.platform

    def _screen_source(self) -> tuple[str, str, dict[str, str]]:
        options = {"framerate": str(self.settings.screen_capture_framerate)}
        device = self.settings.screen_capture_device
        if self.platform.startswith("linux"):
            return device or os.environ.get("DISPLAY", ":0.0"), "x11grab", options
        if self.platform == "darwin":
            options["capture_cursor"] = "1"
            return device or "Capture screen 0", "avfoundation", options
        if self.platform.startswith("win"):
            return device or "desktop", "gdigrab", options
        raise MediaUnsupportedError(f"Screen capture is not supported on {self.platform}")

    def _microphone_source(self, constraints: AudioConstraints) -> tuple[str, str, dict[str, str]]:
        device = self.settings.microphone_device
        if self.platform.startswith("linux"):
            if constraints.echo_cancellation and self.settings.echo_cancel_source:
                device = self.settings.echo_cancel_source
            return device or "default", "pulse", {}
        if self.platform == "darwin":
            return device or ":0", "avfoundation", {}
        if self.platform.startswith("win"):
            if not device:
                raise MediaUnsupportedError(
                    "Set WEBRTC_MICROPHONE_DEVICE to the DirectShow device name"
                )
            return f"audio={device}", "dshow", {}
        raise MediaUnsupportedError(f"Microphone capture is not supported on {self.platform}")

    async def _open(self, file: str, format: str, options: dict[str, str]) -> MediaPlayer:
        try:
            # Opening the FFmpeg container blocks
            return await asyncio.to_thread(MediaPlayer, file, format=format, options=options)
        except PermissionError as e:
            raise MediaPermissionDeniedError(f"Access to {format} capture was denied: {e}") from e
        except (FFmpegError, OSError) as e:
            raise MediaAcquisitionError(f"Could not open {format} capture '{file}': {e}") from e

    async def get_display_media(self, include_audio: bool = True) -> MediaStream:
        file, format, options = self._screen_source()
        player = await self._open(file, format, options)
        if player.video is None:
            raise MediaAcquisitionError(f"{format} capture produced no video track")
        tracks = [player.video]
        if include_audio and player.audio is not None:
            tracks.append(player.audio)
        logger.info("Screen capture started", extra={"format": format, "tracks": len(tracks)})
        return MediaStream(tracks)

    async def get_user_media(self, constraints: AudioConstraints) -> MediaStream:
        file, format, options = self._microphone_source(constraints)
        player = await self._open(file, format, options)
        if player.audio is None:
            raise MediaAcquisitionError(f"{format} capture produced no audio track")
        logger.info(
            "Microphone capture started",
            extra={"format": format, "echo_cancellation": constraints.echo_cancellation},
        )
        return MediaStream([player.audio])
