"""Matrix user bot client speaking the Client-Server API over httpx."""

import asyncio
import json
import logging
import re
import time
import uuid
from pathlib import Path
from typing import Any, Optional
from urllib.parse import quote

import httpx

from chatbridge.platforms.models import (
    ClientName,
    GenericMessage,
    MediaType,
    MessageToEdit,
    MessageToSend,
)
from chatbridge.platforms.protocol import GenericClient
from chatbridge.storage.paths import get_matrix_storage_path

logger = logging.getLogger(__name__)

MAX_MEDIA_SIZE = 1024 * 1024
UPLOAD_TIMEOUT = 60.0

_MXC_RE = re.compile(r"^mxc://(.*?)/(.+)$")

_MSGTYPES = {
    MediaType.PHOTO.value: "m.image",
    MediaType.VIDEO.value: "m.video",
    MediaType.FILE.value: "m.file",
}


class MatrixApiError(Exception):
    """A Matrix homeserver answered with an error status."""

    def __init__(self, status_code: int, errcode: str = "M_UNKNOWN", error: str = ""):
        self.status_code = status_code
        self.errcode = errcode
        self.error = error
        super().__init__(f"{status_code} {errcode}: {error}")


def _segment(value: str) -> str:
    return quote(value, safe="")


class MatrixApi:
    """Minimal async wrapper over the Matrix Client-Server API.

    The access token is sent per request, so the same HTTP client can fetch
    third-party media URLs without leaking it.
    """

    def __init__(
        self,
        home_server: str,
        access_token: str,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        if not home_server.startswith(("http://", "https://")):
            home_server = "https://" + home_server
        self.base_url = home_server.rstrip("/")
        self._access_token = access_token
        self._http = http_client

    @property
    def http(self) -> httpx.AsyncClient:
        if self._http is None or self._http.is_closed:
            self._http = httpx.AsyncClient(timeout=30.0, follow_redirects=True)
        return self._http

    async def close(self) -> None:
        if self._http is not None:
            await self._http.aclose()

    async def request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[dict[str, Any]] = None,
        json_body: Optional[dict[str, Any]] = None,
        content: Optional[bytes] = None,
        content_type: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> dict[str, Any]:
        """Call the homeserver and decode its JSON answer.

        Raises:
            MatrixApiError: On a non-2xx response
            httpx.HTTPError: On transport failures
        """
        headers = {"Authorization": f"Bearer {self._access_token}"}
        if content_type:
            headers["Content-Type"] = content_type

        kwargs: dict[str, Any] = {}
        if timeout is not None:
            kwargs["timeout"] = timeout

        response = await self.http.request(
            method,
            self.base_url + path,
            params=params,
            json=json_body,
            content=content,
            headers=headers,
            **kwargs,
        )

        try:
            data = response.json() if response.content else {}
        except ValueError:
            data = {}

        if response.is_error:
            raise MatrixApiError(
                response.status_code,
                data.get("errcode", "M_UNKNOWN"),
                data.get("error", response.reason_phrase),
            )
        return data

    async def whoami(self) -> dict[str, Any]:
        return await self.request("GET", "/_matrix/client/v3/account/whoami")

    async def sync(self, since: Optional[str], timeout_ms: int) -> dict[str, Any]:
        params: dict[str, Any] = {"timeout": timeout_ms}
        if since:
            params["since"] = since
        # Long poll: give the server its full timeout plus slack
        return await self.request(
            "GET", "/_matrix/client/v3/sync", params=params, timeout=timeout_ms / 1000 + 30
        )

    async def join_room(self, room_id: str) -> None:
        await self.request("POST", f"/_matrix/client/v3/join/{_segment(room_id)}", json_body={})

    async def get_profile(self, user_id: str) -> dict[str, Any]:
        return await self.request("GET", f"/_matrix/client/v3/profile/{_segment(user_id)}")

    async def send_event(self, room_id: str, event_type: str, content: dict[str, Any]) -> str:
        """Send a room event and return its event id."""
        txn_id = uuid.uuid4().hex
        data = await self.request(
            "PUT",
            f"/_matrix/client/v3/rooms/{_segment(room_id)}/send/{_segment(event_type)}/{txn_id}",
            json_body=content,
        )
        return data["event_id"]

    async def create_media(self) -> str:
        """Reserve an mxc:// URI for a later upload (asynchronous upload API)."""
        data = await self.request("POST", "/_matrix/media/v1/create", json_body={})
        return data["content_uri"]

    async def upload_media(
        self,
        mxc_uri: str,
        data: bytes,
        content_type: str,
        timeout: float = UPLOAD_TIMEOUT,
    ) -> None:
        """Fill a reserved mxc:// URI with content."""
        server_name, media_id = parse_mxc(mxc_uri)
        await self.request(
            "PUT",
            f"/_matrix/media/v3/upload/{_segment(server_name)}/{_segment(media_id)}",
            params={"filename": "binary"},
            content=data,
            content_type=content_type,
            timeout=timeout,
        )

    def mxc_to_http(self, mxc_uri: str) -> str:
        """Turn an mxc:// URI into a download URL on this homeserver."""
        server_name, media_id = parse_mxc(mxc_uri)
        return f"{self.base_url}/_matrix/media/v3/download/{_segment(server_name)}/{_segment(media_id)}"


def parse_mxc(mxc_uri: str) -> tuple[str, str]:
    """Split ``mxc://server/media`` into ``(server, media)``."""
    match = _MXC_RE.match(mxc_uri)
    if not match:
        raise ValueError(f"Not an mxc URI: {mxc_uri}")
    return match.group(1), match.group(2)


class SyncTokenStorage:
    """Keeps the /sync ``next_batch`` token in a JSON file."""

    def __init__(self, path: Path):
        self.path = path

    def get_sync_token(self) -> Optional[str]:
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return None
        except (OSError, ValueError) as e:
            logger.warning(f"Ignoring unreadable Matrix storage {self.path}: {e}")
            return None
        return data.get("syncToken")

    def set_sync_token(self, token: str) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps({"syncToken": token}), encoding="utf-8")


class MatrixClient(GenericClient):
    """Matrix user bot client.

    Runs a /sync long-poll loop, joins rooms it is invited to, and emits
    ``message`` / ``edit-message`` for ``m.room.message`` events from other
    users.

    Media is uploaded best-effort: an mxc:// URI is reserved and returned at
    once, and the fetch and upload finish in the background. Resources without
    a Content-Length or above ``max_media_size`` are dropped without an error.
    """

    def __init__(
        self,
        home_server: str = "matrix.org",
        access_token: str = "",
        storage_path: Optional[Path] = None,
        sync_timeout_ms: int = 30000,
        whoami_retry_seconds: float = 5.0,
        max_media_size: int = MAX_MEDIA_SIZE,
        upload_timeout: float = UPLOAD_TIMEOUT,
        api: Optional[MatrixApi] = None,
    ):
        super().__init__()

        self.api = api or MatrixApi(home_server or "matrix.org", access_token)
        self.storage = SyncTokenStorage(storage_path or get_matrix_storage_path())
        self.bot_info: Optional[dict[str, Any]] = None

        self._sync_timeout_ms = sync_timeout_ms
        self._retry_seconds = whoami_retry_seconds
        self._max_media_size = max_media_size
        self._upload_timeout = upload_timeout

        # Source URL -> mxc:// URI, filled once an upload completes
        self._cached_media: dict[str, str] = {}
        # Source URL -> reservation of its mxc:// URI while the upload is in flight
        self._pending_media: dict[str, asyncio.Task] = {}
        self._upload_tasks: set[asyncio.Task] = set()
        self._tasks: set[asyncio.Task] = set()

    @property
    def client_name(self) -> ClientName:
        return ClientName.MATRIX

    @property
    def user_id(self) -> Optional[str]:
        return self.bot_info.get("user_id") if self.bot_info else None

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def start(self) -> None:
        """Start syncing."""
        if self._running:
            logger.warning("Matrix client already running")
            return

        logger.info(f"Starting Matrix client against {self.api.base_url}")
        self._running = True
        for coro, name in (
            (self.fetch_bot_info(), "matrix-whoami"),
            (self._sync_loop(), "matrix-sync"),
        ):
            task = asyncio.create_task(coro, name=name)
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)

    async def stop(self) -> None:
        """Stop syncing and close the HTTP client."""
        if not self._running:
            return

        logger.info("Stopping Matrix client")
        self._running = False

        tasks = [*self._tasks, *self._upload_tasks, *self._pending_media.values()]
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

        await self.api.close()
        logger.info("Matrix client stopped")

    async def fetch_bot_info(self) -> dict[str, Any]:
        """Resolve the bot's own identity, retrying until it succeeds."""
        while True:
            try:
                self.bot_info = await self.api.whoami()
                logger.info(f"Matrix whoami finished: {self.bot_info}")
                return self.bot_info
            except (httpx.HTTPError, MatrixApiError) as e:
                logger.error(f"Matrix whoami failed, retry in {self._retry_seconds}s: {e}")
                await asyncio.sleep(self._retry_seconds)

    # =========================================================================
    # Receiving
    # =========================================================================

    async def _sync_loop(self) -> None:
        since = self.storage.get_sync_token()
        # Without a stored token, skip history and only learn the position
        initial = since is None

        while self._running:
            try:
                response = await self.api.sync(since, 0 if initial else self._sync_timeout_ms)
            except (httpx.HTTPError, MatrixApiError) as e:
                logger.error(f"Matrix sync failed, retry in {self._retry_seconds}s: {e}")
                await asyncio.sleep(self._retry_seconds)
                continue

            await self.process_sync(response, emit_events=not initial)
            initial = False

            since = response.get("next_batch", since)
            if since:
                self.storage.set_sync_token(since)

    async def process_sync(self, response: dict[str, Any], emit_events: bool = True) -> None:
        """Handle one /sync response: join invites and emit room messages."""
        rooms = response.get("rooms", {})

        for room_id in rooms.get("invite", {}):
            try:
                await self.api.join_room(room_id)
                logger.info(f"Joined Matrix room {room_id}")
            except (httpx.HTTPError, MatrixApiError) as e:
                logger.warning(f"Failed to join Matrix room {room_id}: {e}")

        if not emit_events:
            return

        for room_id, room in rooms.get("join", {}).items():
            for event in room.get("timeline", {}).get("events", []):
                if event.get("type") != "m.room.message":
                    continue
                try:
                    await self._handle_room_message(room_id, event)
                except Exception as e:
                    logger.error(
                        f"Skipping Matrix event {event.get('event_id')} in {room_id}: {e}",
                        exc_info=True,
                    )

    async def _handle_room_message(self, room_id: str, event: dict[str, Any]) -> None:
        if self.user_id and event.get("sender") == self.user_id:
            return

        message = await self.transform_message(event, room_id)
        edited = "m.new_content" in event.get("content", {})
        await self.emit("edit-message" if edited else "message", message)

    async def transform_message(self, event: dict[str, Any], room_id: str) -> GenericMessage:
        """Convert an ``m.room.message`` event into a GenericMessage."""
        content = event.get("content", {})
        info = content.get("info") or {}
        mimetype = info.get("mimetype")
        attachment_type = mimetype.split("/")[0] if mimetype else None
        edited = content.get("m.new_content")
        relates_to = content.get("m.relates_to") or {}
        in_reply_to = relates_to.get("m.in_reply_to")
        sender = event.get("sender", "")

        body = (edited or content).get("body")
        if body is None:
            body = ""
        elif not isinstance(body, str):
            body = str(body)

        profile = await self._get_profile(sender)

        media_type = None
        media_url = None
        if attachment_type:
            media_type = {"image": MediaType.PHOTO, "video": MediaType.VIDEO}.get(attachment_type, MediaType.FILE)
            if content.get("url"):
                media_url = self.api.mxc_to_http(content["url"])

        return GenericMessage(
            client_name=ClientName.MATRIX,
            text=body,
            user_id=sender,
            user_name=profile.get("displayname") or sender,
            chat_id=room_id,
            message_id=relates_to.get("event_id", "") if edited else event.get("event_id", ""),
            unix_date=event.get("origin_server_ts", time.time() * 1000) / 1000,
            media_type=media_type,
            media_url=media_url,
            media_mime_type=mimetype if attachment_type else None,
            media_size=info.get("size") if attachment_type else None,
            message_id_replied=in_reply_to.get("event_id") if in_reply_to else None,
            raw_message=event,
            raw_user=profile,
            raw_message_replied=in_reply_to,
        )

    async def _get_profile(self, user_id: str) -> dict[str, Any]:
        try:
            return await self.api.get_profile(user_id)
        except (httpx.HTTPError, MatrixApiError) as e:
            logger.debug(f"No Matrix profile for {user_id}: {e}")
            return {}

    # =========================================================================
    # Sending
    # =========================================================================

    async def send_message(self, message: MessageToSend) -> GenericMessage:
        """Send a text, image, video, file or sticker event.

        Stickers that are not JPEG are sent as video. The media upload may
        still be running when this returns.
        """
        self._check_client(message)

        media_type = message.media_type
        is_supported_sticker = media_type == MediaType.STICKER and message.media_mime_type == "image/jpeg"
        if media_type == MediaType.STICKER and not is_supported_sticker:
            media_type = MediaType.VIDEO.value

        event_type = "m.sticker" if media_type == MediaType.STICKER else "m.room.message"
        content: dict[str, Any] = {"body": message.text}
        if event_type == "m.room.message":
            content["msgtype"] = _MSGTYPES.get(media_type, "m.text") if media_type else "m.text"

        if media_type and message.media_url:
            content["url"] = await self.upload_media_async(message.media_url)
            content["info"] = {
                key: value
                for key, value in {
                    "h": 160,
                    "w": 160,
                    "mimetype": message.media_mime_type,
                    "size": message.media_size,
                }.items()
                if value is not None
            }

        if message.message_id_replied:
            content["m.relates_to"] = {"m.in_reply_to": {"event_id": message.message_id_replied}}

        content.update(message.raw_message_extra)

        logger.debug(f"Sending Matrix event {event_type}: {content}")
        event_id = await self.api.send_event(message.chat_id, event_type, content)

        return GenericMessage.from_sent(
            message,
            client_name=ClientName.MATRIX,
            message_id=event_id,
            user_id=self.user_id or "",
            user_name=self.user_id or "",
            unix_date=time.time(),
            raw_message={"event_id": event_id, "type": event_type, "content": content},
            raw_user=self.bot_info,
        )

    async def edit_message(self, message: MessageToEdit) -> None:
        """Replace a message's text (MSC2676)."""
        self._check_client(message)

        body = message.text if message.hide_edited_flag else f"* {message.text}"
        await self.api.send_event(
            message.chat_id,
            "m.room.message",
            {
                "body": body,
                "msgtype": "m.text",
                "m.new_content": {"body": message.text, "msgtype": "m.text"},
                "m.relates_to": {"rel_type": "m.replace", "event_id": message.message_id},
            },
        )

    # =========================================================================
    # Media
    # =========================================================================

    async def upload_media_async(self, url: str) -> str:
        """Return an mxc:// URI for ``url``, uploading in the background if needed.

        Concurrent calls for a URL whose upload is in flight share its URI.
        """
        if url in self._cached_media:
            mxc_uri = self._cached_media[url]
            logger.info(f"Using cached Matrix media: {self.api.mxc_to_http(mxc_uri)}")
            return mxc_uri

        reservation = self._pending_media.get(url)
        if reservation is None:
            reservation = asyncio.create_task(self._reserve_media(url), name=f"matrix-reserve-{url}")
            self._pending_media[url] = reservation
        return await asyncio.shield(reservation)

    async def _reserve_media(self, url: str) -> str:
        try:
            mxc_uri = await self.api.create_media()
        except BaseException:
            self._pending_media.pop(url, None)
            raise

        task = asyncio.create_task(self._fetch_and_upload(url, mxc_uri), name=f"matrix-upload-{mxc_uri}")
        self._upload_tasks.add(task)
        task.add_done_callback(self._upload_tasks.discard)
        return mxc_uri

    async def _fetch_and_upload(self, url: str, mxc_uri: str) -> None:
        try:
            logger.info(f"Fetching media for Matrix upload: {url}")
            async with self.api.http.stream("GET", url) as resource:
                resource.raise_for_status()
                content_length = int(resource.headers.get("content-length") or 0)
                content_type = resource.headers.get("content-type") or "application/octet-stream"
                if not content_length or content_length > self._max_media_size:
                    logger.info(f"Media too large or unsized, not uploading: {mxc_uri}")
                    return
                data = await resource.aread()

            logger.info(f"Media fetched, uploading to {mxc_uri}")
            await self.api.upload_media(mxc_uri, data, content_type, timeout=self._upload_timeout)
            self._cached_media[url] = mxc_uri
            logger.info(f"Uploaded Matrix media: {self.api.mxc_to_http(mxc_uri)}")
        except (httpx.HTTPError, MatrixApiError) as e:
            logger.warning(f"Matrix media upload for {url} failed: {e}")
        finally:
            self._pending_media.pop(url, None)

    async def wait_for_uploads(self) -> None:
        """Wait until every background upload has finished."""
        if self._upload_tasks:
            await asyncio.gather(*list(self._upload_tasks), return_exceptions=True)
