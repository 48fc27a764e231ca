"""CalDAV client for the task collection."""

import html
import logging
import re
from typing import List, Optional, Union
from xml.etree.ElementTree import Element, SubElement, tostring, register_namespace
import xml.etree.ElementTree as ET

import requests
from requests.auth import HTTPBasicAuth

from domain import Task, Clock, SystemClock, RemoteTaskGateway
from monitoring import NetworkError, RemoteStatusError
from .icalendar_codec import task_to_ical, ical_to_tasks


DAV_NS = 'DAV:'
CALDAV_NS = 'urn:ietf:params:xml:ns:caldav'

register_namespace('D', DAV_NS)
register_namespace('C', CALDAV_NS)

DEFAULT_COLLECTION = 'cbratasks'
DEFAULT_TIMEOUT = 30

# Fallbacks for bodies that are not well-formed XML
CALENDAR_DATA_PATTERN = re.compile(
    r'<(?:[\w.-]+:)?calendar-data\b[^>]*>(.*?)</(?:[\w.-]+:)?calendar-data\s*>',
    re.DOTALL
)
CDATA_PATTERN = re.compile(r'<!\[CDATA\[(.*?)\]\]>', re.DOTALL)
ICAL_BLOCK_PATTERN = re.compile(
    r'(BEGIN:VCALENDAR.*?END:VCALENDAR|BEGIN:VTODO.*?END:VTODO)',
    re.DOTALL
)


def _xml_document(root: Element) -> str:
    xml_str = tostring(root, encoding='unicode')
    return f'<?xml version="1.0" encoding="UTF-8"?>\n{xml_str}'


def build_mkcalendar_body(display_name: str, description: str) -> str:
    """MKCALENDAR body for a collection that only holds VTODOs."""
    root = Element(f'{{{CALDAV_NS}}}mkcalendar')
    set_elem = SubElement(root, f'{{{DAV_NS}}}set')
    prop = SubElement(set_elem, f'{{{DAV_NS}}}prop')

    SubElement(prop, f'{{{DAV_NS}}}displayname').text = display_name
    SubElement(prop, f'{{{CALDAV_NS}}}calendar-description').text = description

    comp_set = SubElement(prop, f'{{{CALDAV_NS}}}supported-calendar-component-set')
    SubElement(comp_set, f'{{{CALDAV_NS}}}comp').set('name', 'VTODO')

    return _xml_document(root)


def build_calendar_query_body() -> str:
    """calendar-query REPORT body selecting every VTODO with its data."""
    root = Element(f'{{{CALDAV_NS}}}calendar-query')
    prop = SubElement(root, f'{{{DAV_NS}}}prop')
    SubElement(prop, f'{{{DAV_NS}}}getetag')
    SubElement(prop, f'{{{CALDAV_NS}}}calendar-data')

    filter_elem = SubElement(root, f'{{{CALDAV_NS}}}filter')
    calendar_filter = SubElement(filter_elem, f'{{{CALDAV_NS}}}comp-filter')
    calendar_filter.set('name', 'VCALENDAR')
    SubElement(calendar_filter, f'{{{CALDAV_NS}}}comp-filter').set('name', 'VTODO')

    return _xml_document(root)


def _local_name(tag) -> str:
    if not isinstance(tag, str):
        return ''
    return tag.rsplit('}', 1)[-1]


def extract_calendar_data(body: Union[str, bytes]) -> List[str]:
    """Return the text of every calendar-data element, whatever its prefix."""
    try:
        root = ET.fromstring(body)
    except ET.ParseError:
        text = body.decode('utf-8', errors='replace') if isinstance(body, bytes) else body
        blocks = []
        for match in CALENDAR_DATA_PATTERN.findall(text):
            cdata = CDATA_PATTERN.search(match)
            blocks.append(cdata.group(1) if cdata else html.unescape(match))
        return [block for block in blocks if block.strip()]

    return [
        elem.text for elem in root.iter()
        if _local_name(elem.tag) == 'calendar-data' and elem.text and elem.text.strip()
    ]


def extract_ical_blocks(body: Union[str, bytes]) -> List[str]:
    """Pull raw VCALENDAR or VTODO blocks out of an arbitrary response body."""
    text = body.decode('utf-8', errors='replace') if isinstance(body, bytes) else body
    return [html.unescape(block) for block in ICAL_BLOCK_PATTERN.findall(text)]


def parse_multistatus(body: Union[str, bytes], clock: Clock) -> List[Task]:
    """Parse a REPORT multi-status body into tasks.

    Blocks that fail to parse are skipped.
    """
    blocks = extract_calendar_data(body)
    if not blocks:
        text = body.decode('utf-8', errors='replace') if isinstance(body, bytes) else body
        if 'BEGIN:VTODO' in text:
            blocks = extract_ical_blocks(text)

    tasks = []
    for block in blocks:
        tasks.extend(ical_to_tasks(block, clock))
    return tasks


class CalDAVClient(RemoteTaskGateway):
    """CalDAV implementation of RemoteTaskGateway.

    The collection lives at ``<base_url>/<username>/<collection>/`` and each
    task at ``<collection url><id>.ics``. Every request is a single round trip
    with HTTP Basic auth and a fixed timeout.
    """

    def __init__(
        self,
        base_url: str,
        username: str,
        password: str,
        collection: str = DEFAULT_COLLECTION,
        timeout: int = DEFAULT_TIMEOUT,
        clock: Optional[Clock] = None,
        session: Optional[requests.Session] = None
    ):
        self.base_url = base_url.rstrip('/')
        self.username = username
        self.collection = collection
        self.timeout = timeout
        self.clock = clock or SystemClock()
        self.session = session or requests.Session()
        self.session.auth = HTTPBasicAuth(username, password)
        self.session.headers.update({
            'User-Agent': 'cbratasks',
        })
        self.logger = logging.getLogger(__name__)

    @classmethod
    def from_config(cls, sync_config, clock: Optional[Clock] = None) -> 'CalDAVClient':
        """Build a client from a SyncConfig."""
        return cls(
            base_url=sync_config.url,
            username=sync_config.username,
            password=sync_config.password,
            collection=sync_config.collection,
            timeout=sync_config.timeout,
            clock=clock
        )

    @property
    def collection_url(self) -> str:
        return f"{self.base_url}/{self.username}/{self.collection}/"

    def task_url(self, task_id: str) -> str:
        return f"{self.collection_url}{task_id}.ics"

    def _request(self, method: str, url: str, body: Optional[str] = None,
                 headers: Optional[dict] = None) -> requests.Response:
        self.logger.debug(f"{method} {url}")
        try:
            return self.session.request(
                method,
                url,
                data=body.encode('utf-8') if body is not None else None,
                headers=headers,
                timeout=self.timeout
            )
        except requests.RequestException as e:
            raise NetworkError(f"{method} {url} failed: {e}", cause=e)

    def _check_status(self, response: requests.Response, method: str, accepted: tuple) -> None:
        if response.status_code not in accepted:
            raise RemoteStatusError(
                f"{method} {response.url} returned {response.status_code}",
                status_code=response.status_code,
                body=response.text
            )

    def collection_exists(self) -> bool:
        """PROPFIND the collection: 200/207 present, 404 absent, anything else fails."""
        response = self._request('PROPFIND', self.collection_url, headers={'Depth': '0'})
        if response.status_code in (200, 207):
            return True
        if response.status_code == 404:
            return False
        raise RemoteStatusError(
            f"Unexpected status checking collection: {response.status_code}",
            status_code=response.status_code,
            body=response.text
        )

    def create_collection(self) -> None:
        """MKCALENDAR a VTODO collection."""
        body = build_mkcalendar_body(self.collection, f"Task list managed by {self.collection}")
        response = self._request(
            'MKCALENDAR',
            self.collection_url,
            body=body,
            headers={'Content-Type': 'application/xml'}
        )
        self._check_status(response, 'MKCALENDAR', (200, 201))
        self.logger.info(f"Created CalDAV collection {self.collection_url}")

    def ensure_collection(self) -> None:
        if not self.collection_exists():
            self.logger.info(f"Collection {self.collection_url} not found, creating it")
            self.create_collection()

    def fetch_all(self) -> List[Task]:
        """REPORT every VTODO in the collection."""
        response = self._request(
            'REPORT',
            self.collection_url,
            body=build_calendar_query_body(),
            headers={'Content-Type': 'application/xml', 'Depth': '1'}
        )
        self._check_status(response, 'REPORT', (200, 207))

        tasks = parse_multistatus(response.content, self.clock)
        self.logger.info(f"Fetched {len(tasks)} tasks from {self.collection_url}")
        return tasks

    def put_task(self, task: Task) -> None:
        """Create or replace ``<id>.ics``."""
        response = self._request(
            'PUT',
            self.task_url(task.id),
            body=task_to_ical(task, self.clock.now()),
            headers={'Content-Type': 'text/calendar; charset=utf-8'}
        )
        self._check_status(response, 'PUT', (200, 201, 204))
        self.logger.debug(f"Pushed task {task.id}")

    def delete_task(self, task_id: str) -> None:
        """DELETE ``<id>.ics``; a missing resource counts as deleted."""
        response = self._request('DELETE', self.task_url(task_id))
        self._check_status(response, 'DELETE', (200, 204, 404))
        self.logger.debug(f"Deleted remote task {task_id}")
