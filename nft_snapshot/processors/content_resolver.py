import json
import logging
import string
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

import requests

from ..config import Config
from ..models import NFTRecord
from .batching import run_in_batches

logger = logging.getLogger(__name__)

IPFS_SCHEME = 'ipfs://'
HTTP_SCHEMES = ('http://', 'https://')

CIDV1_PREFIX = 'baf'
CIDV0_PREFIX = 'Qm'
CIDV0_LENGTH = 46
# Bitcoin base58: no 0, O, I or l
CIDV0_ALPHABET = frozenset('123456789ABCDEFGHJKLMNPQRSTUVWXYZabcdefghijkmnopqrstuvwxyz')
CIDV1_ALPHABET = frozenset(string.ascii_lowercase + '234567')

REDIRECT_STATUSES = (301, 302, 303, 307, 308)
JSON_CONTENT_TYPES = ('application/json', 'text/json')
GENERIC_CONTENT_TYPES = ('', 'application/octet-stream', 'binary/octet-stream', 'text/plain')

IMAGE_SIGNATURES = (
    b'\x89PNG\r\n\x1a\n',
    b'\xff\xd8\xff',
    b'GIF87a',
    b'GIF89a',
)


class UnresolvableContentError(ValueError):
    """The URI does not point at anything we know how to fetch."""
    pass


class FetchFailure(Exception):
    """Fetching or interpreting off-chain content failed."""
    pass


@dataclass(frozen=True)
class ResolvedContent:
    image_url: Optional[str] = None
    name: Optional[str] = None
    description: Optional[str] = None


UNRESOLVED = ResolvedContent()


def is_valid_cid(cid: str) -> bool:
    if cid.startswith(CIDV1_PREFIX):
        return len(cid) > len(CIDV1_PREFIX) and all(c in CIDV1_ALPHABET for c in cid)
    if cid.startswith(CIDV0_PREFIX):
        return len(cid) == CIDV0_LENGTH and all(c in CIDV0_ALPHABET for c in cid)
    return False


def _media_type(resp: requests.Response) -> str:
    return (resp.headers.get('Content-Type') or '').split(';', 1)[0].strip().lower()


def _is_json_type(media_type: str) -> bool:
    return media_type in JSON_CONTENT_TYPES or media_type.endswith('+json')


def _looks_like_image(body: bytes) -> bool:
    if body.startswith(IMAGE_SIGNATURES):
        return True
    if body[:4] == b'RIFF' and body[8:12] == b'WEBP':
        return True
    head = body[:256].lstrip().lower()
    return head.startswith(b'<svg') or (head.startswith(b'<?xml') and b'<svg' in head)


def _optional_str(metadata: Dict[str, Any], key: str) -> Optional[str]:
    value = metadata.get(key)
    if isinstance(value, str) and value.strip():
        return value
    return None


class ContentResolver:
    """
    Turns NFT URIs into image / name / description.

    IPFS URIs are rewritten onto an HTTP gateway, fetched, and either taken
    as the image itself or parsed as JSON metadata depending on Content-Type.
    """

    def __init__(self, gateway: Optional[str] = None, batch_size: Optional[int] = None,
                 timeout: Optional[float] = None, session: Optional[requests.Session] = None):
        self.gateway = gateway or Config.IPFS_GATEWAY
        if not self.gateway.endswith('/'):
            self.gateway += '/'
        self.batch_size = batch_size or Config.RESOLVE_BATCH_SIZE
        self.timeout = timeout if timeout is not None else Config.FETCH_TIMEOUT_SECONDS
        self._session = session or requests.Session()
        self.stats = {'resolvable': 0, 'unresolvable': 0, 'resolved': 0, 'failed': 0, 'batches': 0}

    def canonical_url(self, uri: str) -> str:
        """
        Raises:
            UnresolvableContentError: For unknown schemes or IPFS identifiers of unknown shape
        """
        uri = (uri or '').strip()
        if not uri:
            raise UnresolvableContentError('empty URI')
        if uri.startswith(HTTP_SCHEMES):
            return uri
        if not uri.startswith(IPFS_SCHEME):
            raise UnresolvableContentError(f'unsupported scheme in {uri!r}')

        target = uri[len(IPFS_SCHEME):]
        if target.startswith('ipfs/'):
            target = target[len('ipfs/'):]
        cid, sep, path = target.partition('/')
        if not is_valid_cid(cid):
            raise UnresolvableContentError(f'unrecognised CID {cid!r}')
        return f'{self.gateway}{cid}{sep}{path}'

    def classify(self, uri: str) -> Optional[str]:
        try:
            return self.canonical_url(uri)
        except UnresolvableContentError as e:
            logger.debug(f'Unresolvable URI: {e}')
            return None

    def _get(self, url: str) -> requests.Response:
        try:
            resp = self._session.get(url, timeout=self.timeout, allow_redirects=False, stream=True)
            if resp.status_code in REDIRECT_STATUSES:
                location = resp.headers.get('Location')
                resp.close()
                if not location:
                    raise FetchFailure(f'{url} redirected without a Location header')
                next_url = requests.compat.urljoin(url, location)
                resp = self._session.get(next_url, timeout=self.timeout, allow_redirects=False, stream=True)
                if resp.status_code in REDIRECT_STATUSES:
                    resp.close()
                    raise FetchFailure(f'{url} redirected more than once')
            if resp.status_code >= 400:
                resp.close()
            resp.raise_for_status()
            return resp
        except requests.exceptions.RequestException as e:
            raise FetchFailure(f'GET {url} failed: {e}') from e

    def _read_body(self, resp: requests.Response) -> bytes:
        try:
            return resp.content
        except requests.exceptions.RequestException as e:
            raise FetchFailure(f'reading {resp.url} failed: {e}') from e

    def _parse_metadata(self, body: bytes) -> ResolvedContent:
        try:
            metadata = json.loads(body)
        except (ValueError, RecursionError) as e:
            raise FetchFailure(f'metadata is not valid JSON: {e}') from e
        if not isinstance(metadata, dict):
            raise FetchFailure(f'metadata is a JSON {type(metadata).__name__}, expected an object')

        image = _optional_str(metadata, 'image')
        return ResolvedContent(
            image_url=self.classify(image) if image else None,
            name=_optional_str(metadata, 'name'),
            description=_optional_str(metadata, 'description'),
        )

    def fetch(self, url: str) -> ResolvedContent:
        """
        Raises:
            FetchFailure: On transport errors, non-2xx, unknown content kinds or bad metadata
        """
        resp = self._get(url)
        try:
            media_type = _media_type(resp)
            if media_type.startswith('image/'):
                # Image bodies are never read
                return ResolvedContent(image_url=url)
            if _is_json_type(media_type):
                return self._parse_metadata(self._read_body(resp))
            if media_type in GENERIC_CONTENT_TYPES:
                body = self._read_body(resp)
                if _looks_like_image(body):
                    return ResolvedContent(image_url=url)
                if body.lstrip().startswith(b'{'):
                    return self._parse_metadata(body)
                raise FetchFailure(f'{url} served {media_type or "no content type"} that is neither image nor JSON')
            raise FetchFailure(f'{url} served unsupported content type {media_type!r}')
        finally:
            resp.close()

    def _try_fetch(self, url: str) -> Optional[ResolvedContent]:
        try:
            return self.fetch(url)
        except FetchFailure as e:
            logger.warning(f'Content resolution failed: {e}')
            return None

    def resolve(self, url: str) -> ResolvedContent:
        """Fetch never raises here; any failure degrades to all-null fields."""
        return self._try_fetch(url) or UNRESOLVED

    def resolve_records(self, records: Sequence[NFTRecord]) -> int:
        """
        Fill image_url / name / description for every record with a resolvable URI.

        Fetches run in batches of `batch_size`; results are written back to
        records only after the batch has joined.

        Returns:
            Number of records that got at least one content field
        """
        pending: List[tuple] = []
        for record in records:
            url = self.classify(record.uri)
            if url is None:
                self.stats['unresolvable'] += 1
            else:
                pending.append((record, url))
        self.stats['resolvable'] = len(pending)

        logger.info(f'Resolving content for {len(pending):,} NFTs '
                    f'({self.stats["unresolvable"]:,} unresolvable) in batches of {self.batch_size}')

        done = 0
        for batch, results in run_in_batches(pending, lambda item: self._try_fetch(item[1]), self.batch_size):
            self.stats['batches'] += 1
            for (record, _), content in zip(batch, results):
                if content is None:
                    self.stats['failed'] += 1
                    continue
                record.image_url = content.image_url
                record.name = content.name
                record.description = content.description
                if content != UNRESOLVED:
                    self.stats['resolved'] += 1
            done += len(batch)
            logger.debug(f'  Resolved: {done}/{len(pending)}')

        logger.info(f'Finished resolving content. Resolved {self.stats["resolved"]:,}/{len(pending):,} '
                    f'in {self.stats["batches"]} batches')
        return self.stats['resolved']
