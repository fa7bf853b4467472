"""ESC/POS rendering and raw TCP delivery for thermal receipt printers."""

from __future__ import annotations

import asyncio
import logging
from datetime import timezone, tzinfo

from .base import LabelJob, PrintFailure, PrintJob, PrintResult, TicketSlipJob

logger = logging.getLogger(__name__)

ESC = b"\x1b"
GS = b"\x1d"

INITIALIZE = ESC + b"@"
ALIGN_LEFT = ESC + b"a\x00"
ALIGN_CENTER = ESC + b"a\x01"
FULL_CUT = GS + b"V\x00"

# ESC t <n> code page selectors understood by Epson compatible firmware.
CODE_PAGES: dict[str, int] = {
    "cp437": 0,
    "cp850": 2,
    "cp860": 3,
    "cp858": 19,
}


class EscPosDocument:
    """Small builder producing the byte stream for a single receipt."""

    def __init__(self, *, encoding: str = "cp850", line_width: int = 48, line_character: str = "-") -> None:
        self.encoding = encoding
        self.line_width = line_width
        self.line_character = line_character
        self._buffer = bytearray(INITIALIZE)
        code_page = CODE_PAGES.get(encoding.lower())
        if code_page is not None:
            self._buffer += ESC + b"t" + bytes([code_page])

    def align_left(self) -> "EscPosDocument":
        self._buffer += ALIGN_LEFT
        return self

    def align_center(self) -> "EscPosDocument":
        self._buffer += ALIGN_CENTER
        return self

    def println(self, text: str = "") -> "EscPosDocument":
        self._buffer += text.encode(self.encoding, errors="replace") + b"\n"
        return self

    def draw_line(self) -> "EscPosDocument":
        return self.println(self.line_character * self.line_width)

    def cut(self) -> "EscPosDocument":
        # Feed past the cutter before slicing the paper.
        self._buffer += b"\n" * 3 + FULL_CUT
        return self

    def to_bytes(self) -> bytes:
        return bytes(self._buffer)


def render_ticket_slip(
    job: TicketSlipJob,
    *,
    tz: tzinfo = timezone.utc,
    encoding: str = "cp850",
    line_width: int = 48,
    title: str = "SERVICE TICKET",
) -> bytes:
    issued_at = job.issued_at.astimezone(tz)
    document = (
        EscPosDocument(encoding=encoding, line_width=line_width)
        .align_center()
        .println(title)
        .println(f"Ticket: {job.number}")
        .println(f"Date: {issued_at:%Y-%m-%d %H:%M:%S}")
        .println("Please wait to be called")
        .draw_line()
        .cut()
    )
    return document.to_bytes()


def render_label(job: LabelJob, *, encoding: str = "cp850", line_width: int = 48) -> bytes:
    document = (
        EscPosDocument(encoding=encoding, line_width=line_width)
        .align_left()
        .println(f"Name: {job.name}")
        .println(f"ID: {job.national_id}")
        .println(f"Ticket: {job.number}")
        .draw_line()
        .cut()
    )
    return document.to_bytes()


class NetworkEscPosPrinter:
    """Thermal printer reachable over a raw TCP socket (JetDirect, port 9100)."""

    def __init__(
        self,
        name: str,
        host: str,
        port: int = 9100,
        *,
        encoding: str = "cp850",
        line_width: int = 48,
        connect_timeout: float = 3.0,
        tz: tzinfo = timezone.utc,
    ) -> None:
        self.name = name
        self.host = host
        self.port = port
        self.encoding = encoding
        self.line_width = line_width
        self.connect_timeout = connect_timeout
        self.tz = tz

    def render(self, job: PrintJob) -> bytes:
        if isinstance(job, TicketSlipJob):
            return render_ticket_slip(job, tz=self.tz, encoding=self.encoding, line_width=self.line_width)
        if isinstance(job, LabelJob):
            return render_label(job, encoding=self.encoding, line_width=self.line_width)
        raise TypeError(f"Unsupported print job: {type(job).__name__}")

    async def print(self, job: PrintJob) -> PrintResult:
        payload = self.render(job)
        try:
            await self._send(payload)
        except PrintFailure as exc:
            return PrintResult.failed(str(exc))
        logger.debug("Sent %d bytes to %s printer at %s:%s", len(payload), self.name, self.host, self.port)
        return PrintResult.ok()

    async def check_connection(self) -> bool:
        try:
            _, writer = await self._connect()
        except PrintFailure:
            return False
        await self._close(writer)
        return True

    async def _connect(self) -> tuple[asyncio.StreamReader, asyncio.StreamWriter]:
        try:
            return await asyncio.wait_for(
                asyncio.open_connection(self.host, self.port),
                timeout=self.connect_timeout,
            )
        except (OSError, asyncio.TimeoutError) as exc:
            raise PrintFailure(
                f"{self.name} printer unreachable at {self.host}:{self.port}: {str(exc) or type(exc).__name__}"
            ) from exc

    async def _send(self, payload: bytes) -> None:
        _, writer = await self._connect()
        try:
            writer.write(payload)
            await writer.drain()
        except OSError as exc:
            raise PrintFailure(f"{self.name} printer dropped the connection: {exc}") from exc
        finally:
            await self._close(writer)

    @staticmethod
    async def _close(writer: asyncio.StreamWriter) -> None:
        writer.close()
        try:
            await writer.wait_closed()
        except OSError as exc:
            logger.debug("Ignoring error while closing printer socket: %s", exc)
