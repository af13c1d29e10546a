#
# Copyright (c) 2024-2025, Daily
#
# SPDX-License-Identifier: BSD 2-Clause License
#

"""SDP document model for simulcast munging.

Parsing and serialization are delegated to ``sdp_transform``. Media sections
are converted to immutable ``MediaDescription`` values so transforms can be
written as plain functions, and written back into a copy of the parsed
session only when they actually changed.
"""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple

import sdp_transform

logger = logging.getLogger(__name__)

SIM = "SIM"
FID = "FID"

X_GOOGLE_FLAG_KEY = "xGoogleFlag"


@dataclass(frozen=True)
class SourceEntry:
    """A single ``a=ssrc:<ssrc> <attribute>[:<value>]`` line.

    Parameters:
        ssrc: Synchronization source identifier.
        attribute: Attribute name (``msid``, ``cname``, ...).
        value: Attribute value, None for value-less attributes.
    """

    ssrc: int
    attribute: str
    value: Optional[str] = None


@dataclass(frozen=True)
class SourceGroup:
    """A single ``a=ssrc-group:<semantics> <ssrc> ...`` line.

    Parameters:
        semantics: Group semantics, e.g. ``SIM`` or ``FID``.
        ssrcs: Member SSRCs in declaration order.
    """

    semantics: str
    ssrcs: Tuple[int, ...]

    def __contains__(self, ssrc: object) -> bool:
        return ssrc in self.ssrcs


@dataclass(frozen=True)
class MediaDescription:
    """The parts of an ``m=`` section the simulcast engine reads or rewrites.

    Parameters:
        kind: Media type (``audio``, ``video``, ...).
        direction: ``sendrecv``, ``sendonly``, ``recvonly``, ``inactive`` or None.
        sources: Source attribute lines in order.
        groups: Source group lines in order.
        invalid: Attribute values the parser did not recognize, in order.
            Vendor ``x-google-flag`` lines always end up here.
    """

    kind: str
    direction: Optional[str] = None
    sources: Tuple[SourceEntry, ...] = ()
    groups: Tuple[SourceGroup, ...] = ()
    invalid: Tuple[str, ...] = ()

    @property
    def ssrcs(self) -> List[int]:
        """Return the distinct SSRCs in order of first appearance."""
        seen: List[int] = []
        for entry in self.sources:
            if entry.ssrc not in seen:
                seen.append(entry.ssrc)
        return seen

    def groups_with(self, semantics: str) -> List[SourceGroup]:
        """Return every group with the given semantics."""
        return [group for group in self.groups if group.semantics == semantics]

    def find_group(self, semantics: str) -> Optional[SourceGroup]:
        """Return the first group with the given semantics, if any."""
        for group in self.groups:
            if group.semantics == semantics:
                return group
        return None

    @classmethod
    def from_media(cls, media: Dict[str, Any]) -> MediaDescription:
        """Build a MediaDescription from an ``sdp_transform`` media dict.

        Args:
            media: One entry of the parsed session's ``media`` list.

        Returns:
            The corresponding MediaDescription.

        Raises:
            ValueError: If an SSRC or group member is not an integer.
        """
        sources = tuple(
            SourceEntry(
                ssrc=int(line["id"]),
                attribute=str(line.get("attribute") or ""),
                value=None if line.get("value") is None else str(line["value"]),
            )
            for line in media.get("ssrcs", [])
        )
        groups = tuple(
            SourceGroup(
                semantics=str(line.get("semantics", "")),
                ssrcs=tuple(int(ssrc) for ssrc in str(line.get("ssrcs", "")).split()),
            )
            for line in media.get("ssrcGroups", [])
        )
        invalid = tuple(str(line.get("value", "")) for line in media.get("invalid", []))
        # Newer grammars parse the vendor flag into its own key.
        if media.get(X_GOOGLE_FLAG_KEY) is not None:
            invalid += (f"x-google-flag:{media[X_GOOGLE_FLAG_KEY]}",)
        return cls(
            kind=str(media.get("type", "")),
            direction=media.get("direction"),
            sources=sources,
            groups=groups,
            invalid=invalid,
        )

    def to_media(self, media: Dict[str, Any]) -> Dict[str, Any]:
        """Return a copy of ``media`` carrying this description's lines.

        Args:
            media: The ``sdp_transform`` media dict this description came from.

        Returns:
            A new media dict; ``media`` itself is left untouched.
        """
        result = copy.deepcopy(media)

        ssrcs = []
        for entry in self.sources:
            line: Dict[str, Any] = {"id": entry.ssrc, "attribute": entry.attribute}
            if entry.value is not None:
                line["value"] = entry.value
            ssrcs.append(line)
        _set_or_remove(result, "ssrcs", ssrcs)

        groups = [
            {"semantics": group.semantics, "ssrcs": " ".join(str(s) for s in group.ssrcs)}
            for group in self.groups
        ]
        _set_or_remove(result, "ssrcGroups", groups)

        result.pop(X_GOOGLE_FLAG_KEY, None)
        _set_or_remove(result, "invalid", [{"value": value} for value in self.invalid])
        return result


def _set_or_remove(media: Dict[str, Any], key: str, lines: List[Dict[str, Any]]):
    if lines:
        media[key] = lines
    else:
        media.pop(key, None)


def parse_session(sdp: str) -> Dict[str, Any]:
    """Parse SDP text into an ``sdp_transform`` session dict."""
    return sdp_transform.parse(sdp)


def write_session(session: Dict[str, Any]) -> str:
    """Serialize an ``sdp_transform`` session dict back to SDP text."""
    return sdp_transform.write(session)


def transform_video(
    session: Dict[str, Any], action: Callable[[MediaDescription], MediaDescription]
) -> Dict[str, Any]:
    """Apply ``action`` to every video section of a parsed session.

    Sections that are not video, that ``action`` leaves unchanged, or that
    cannot be interpreted are carried over as parsed.

    Args:
        session: Parsed session from ``parse_session``.
        action: Transform for a single video MediaDescription.

    Returns:
        A new session dict; ``session`` itself is left untouched.
    """
    media_list = session.get("media")
    if not isinstance(media_list, list):
        return session

    result = dict(session)
    result["media"] = []
    for index, media in enumerate(media_list):
        if media.get("type") != "video":
            result["media"].append(media)
            continue

        try:
            description = MediaDescription.from_media(media)
        except (KeyError, TypeError, ValueError) as exc:
            logger.warning("Leaving malformed video section %d untouched: %s", index, exc)
            result["media"].append(media)
            continue

        munged = action(description)
        if munged == description:
            result["media"].append(media)
        else:
            result["media"].append(munged.to_media(media))
    return result
