#
# Copyright (c) 2024-2025, Daily
#
# SPDX-License-Identifier: BSD 2-Clause License
#

"""``x-google-flag:conference`` handling for video sections."""

from __future__ import annotations

from dataclasses import replace

from sdp_simulcast.sdp import MediaDescription

GOOG_CONFERENCE_FLAG = "x-google-flag:conference"


def remove_goog_conference(media: MediaDescription) -> MediaDescription:
    """Drop every conference flag from ``media``."""
    if GOOG_CONFERENCE_FLAG not in media.invalid:
        return media
    return replace(
        media, invalid=tuple(value for value in media.invalid if value != GOOG_CONFERENCE_FLAG)
    )


def assert_goog_conference(media: MediaDescription) -> MediaDescription:
    """Make sure ``media`` carries the conference flag exactly once."""
    count = media.invalid.count(GOOG_CONFERENCE_FLAG)
    if count == 1:
        return media
    if count == 0:
        return replace(media, invalid=media.invalid + (GOOG_CONFERENCE_FLAG,))

    invalid = []
    for value in media.invalid:
        if value == GOOG_CONFERENCE_FLAG and GOOG_CONFERENCE_FLAG in invalid:
            continue
        invalid.append(value)
    return replace(media, invalid=tuple(invalid))


def annotate_conference(media: MediaDescription, simulcast_active: bool) -> MediaDescription:
    """Add or remove the conference flag depending on ``simulcast_active``."""
    if simulcast_active:
        return assert_goog_conference(media)
    return remove_goog_conference(media)
