"""Local TTS provider using native OS text-to-speech commands.

This module provides text-to-speech functionality using the built-in
TTS capabilities of the operating system (say on macOS, espeak on Linux,
SAPI on Windows). It needs no network or API key and is registered as the
last link of the fallback chain.
"""

import asyncio
import logging
import platform
import shutil
import tempfile
from pathlib import Path

from ..tts.errors import ProviderUnavailable, TTSError
from .base import SynthesisOptions, TTSProvider

logger = logging.getLogger(__name__)

# Words per minute at speed 1.0 for say and espeak
BASE_WORDS_PER_MINUTE = 175

REQUIRED_COMMANDS = {
    "Darwin": ("say", "afconvert"),
    "Linux": ("espeak",),
    "Windows": ("powershell",),
}


class LocalTTSProvider(TTSProvider):
    """Local TTS provider using native OS commands.

    Note: Audio quality will be robotic compared to cloud voices.
    """

    name = "local"

    def __init__(self, platform_name: str | None = None) -> None:
        """Initialize local TTS provider and detect platform."""
        self.platform = platform_name or platform.system()

    def is_available(self) -> bool:
        commands = REQUIRED_COMMANDS.get(self.platform)
        if commands is None:
            return False
        return all(shutil.which(cmd) for cmd in commands)

    def output_format(self, options: SynthesisOptions) -> str:
        return "wav"

    async def synthesize(self, text: str, options: SynthesisOptions) -> bytes:
        """Convert text to speech using native OS commands.

        Args:
            text: Text to convert to speech
            options: Voice and speed are honoured; output is always WAV

        Returns:
            Audio data as bytes in WAV format

        Raises:
            ProviderUnavailable: If the platform or its TTS command is missing
            TTSError: If the TTS command fails
        """
        if not self.is_available():
            raise ProviderUnavailable(
                f"No local TTS command available on platform {self.platform}"
            )

        with tempfile.NamedTemporaryFile(suffix=".wav", delete=False) as tmp:
            output_path = Path(tmp.name)

        rate = None
        if options.speed is not None:
            rate = str(round(BASE_WORDS_PER_MINUTE * options.speed))

        try:
            if self.platform == "Darwin":
                # say writes AIFF; convert to WAV for the cache and player
                aiff_path = output_path.with_suffix(".aiff")
                cmd = ["say", "-o", str(aiff_path)]
                if options.voice:
                    cmd.extend(["-v", options.voice])
                if rate:
                    cmd.extend(["-r", rate])
                cmd.append(text)
                try:
                    await self._run(cmd)
                    await self._run(
                        [
                            "afconvert",
                            "-f",
                            "WAVE",
                            "-d",
                            "LEI16",
                            str(aiff_path),
                            str(output_path),
                        ]
                    )
                finally:
                    aiff_path.unlink(missing_ok=True)

            elif self.platform == "Linux":
                cmd = ["espeak", "-w", str(output_path)]
                if options.voice:
                    cmd.extend(["-v", options.voice])
                if rate:
                    cmd.extend(["-s", rate])
                cmd.append(text)
                await self._run(cmd)

            else:  # Windows
                escaped = text.replace("`", "``").replace('"', '`"')
                ps_script = f'''
                Add-Type -AssemblyName System.Speech
                $speak = New-Object System.Speech.Synthesis.SpeechSynthesizer
                $speak.SetOutputToWaveFile("{output_path}")
                '''
                if options.voice:
                    ps_script += f'$speak.SelectVoice("{options.voice}")\n'
                ps_script += f'$speak.Speak("{escaped}")\n$speak.Dispose()'
                await self._run(["powershell", "-Command", ps_script])

            return await asyncio.to_thread(output_path.read_bytes)

        finally:
            output_path.unlink(missing_ok=True)

    @staticmethod
    async def _run(cmd: list[str]) -> None:
        # Use async subprocess to avoid blocking event loop
        proc = await asyncio.create_subprocess_exec(
            *cmd, stdout=asyncio.subprocess.PIPE, stderr=asyncio.subprocess.PIPE
        )
        _, stderr = await proc.communicate()
        if proc.returncode != 0:
            raise TTSError(
                f"{cmd[0]} failed with code {proc.returncode}: {stderr.decode(errors='replace')}"
            )
