#
# Copyright (c) 2024-2025, Daily
#
# SPDX-License-Identifier: BSD 2-Clause License
#

"""Tests for local simulcast layer synthesis and the SSRC cache."""

from dataclasses import replace

import pytest

from sdp_simulcast.local import (
    LocalSimulcastSynthesizer,
    SsrcCache,
    generate_ssrc,
    parse_sim_layers,
)
from sdp_simulcast.sdp import FID, SIM, MediaDescription, SourceEntry, SourceGroup
from sdp_simulcast.sources import get_ssrc_attribute


def _sequence(*values):
    """Return a generator that yields ``values`` in order."""
    return iter(values).__next__


def _no_ssrcs():
    raise AssertionError("no new SSRC expected")


def _stream(*ssrcs, msid="stream video-track", cname="local"):
    entries = []
    for ssrc in ssrcs:
        entries.append(SourceEntry(ssrc, "cname", cname))
        entries.append(SourceEntry(ssrc, "msid", msid))
    return tuple(entries)


PRIMARY_ONLY = MediaDescription(kind="video", direction="sendrecv", sources=_stream(1000))
PRIMARY_WITH_RTX = MediaDescription(
    kind="video",
    direction="sendrecv",
    sources=_stream(1000, 1001),
    groups=(SourceGroup(FID, (1000, 1001)),),
)


class TestSsrcCache:
    def test_empty(self):
        cache = SsrcCache()
        assert len(cache) == 0
        assert cache.layers == ()
        assert 1000 not in cache

    def test_force_set_and_clear(self):
        cache = SsrcCache()
        cache.force_set([1000, 1, 2], rtx={1: 11})
        assert cache.layers == (1000, 1, 2)
        assert 2 in cache
        assert cache.rtx_for(1) == 11
        assert cache.rtx_for(2) is None

        cache.clear()
        assert cache.layers == ()
        assert cache.rtx_for(1) is None

    def test_layers_is_a_copy(self):
        """Callers cannot mutate the cache through the layers tuple."""
        cache = SsrcCache()
        ssrcs = [1, 2]
        cache.force_set(ssrcs)
        ssrcs.append(3)
        assert cache.layers == (1, 2)


class TestGenerateSsrc:
    def test_range(self):
        for _ in range(100):
            assert 0 <= generate_ssrc() <= 0xFFFFFFFF


class TestParseSimLayers:
    def test_sim_group_order(self):
        media = replace(PRIMARY_ONLY, groups=(SourceGroup(SIM, (1000, 3, 2)),))
        assert parse_sim_layers(media) == [1000, 3, 2]

    def test_without_sim_group(self):
        assert parse_sim_layers(PRIMARY_WITH_RTX) == [1000]
        assert parse_sim_layers(PRIMARY_WITH_RTX, 1001) == [1001]


class TestGenerateLayers:
    def test_generate_without_rtx(self):
        """An unseen primary gets numOfLayers - 1 new layers."""
        synthesizer = LocalSimulcastSynthesizer(ssrc_generator=_sequence(1, 2))
        media = synthesizer.restore_simulcast(PRIMARY_ONLY)

        assert media.groups == (SourceGroup(SIM, (1000, 1, 2)),)
        assert media.ssrcs == [1000, 1, 2]
        assert len(media.sources) == 6
        for ssrc in (1, 2):
            assert get_ssrc_attribute(media, ssrc, "msid") == "stream video-track"
            assert get_ssrc_attribute(media, ssrc, "cname") == "local"
        assert synthesizer.cache.layers == (1000, 1, 2)

    def test_generate_with_rtx(self):
        """Every generated layer gets an RTX stream and FID group."""
        synthesizer = LocalSimulcastSynthesizer(ssrc_generator=_sequence(1, 2, 11, 12))
        media = synthesizer.restore_simulcast(PRIMARY_WITH_RTX)

        assert media.groups == (
            SourceGroup(FID, (1000, 1001)),
            SourceGroup(SIM, (1000, 1, 2)),
            SourceGroup(FID, (1, 11)),
            SourceGroup(FID, (2, 12)),
        )
        assert get_ssrc_attribute(media, 12, "msid") == "stream video-track"
        assert synthesizer.cache.layers == (1000, 1, 2)
        assert synthesizer.cache.rtx_for(1000) == 1001
        assert synthesizer.cache.rtx_for(2) == 12

    def test_num_of_layers(self):
        synthesizer = LocalSimulcastSynthesizer(
            num_of_layers=2, ssrc_generator=_sequence(5)
        )
        media = synthesizer.restore_simulcast(PRIMARY_ONLY)
        assert media.find_group(SIM) == SourceGroup(SIM, (1000, 5))

    def test_single_layer_is_noop(self):
        """With one layer there is nothing to add."""
        synthesizer = LocalSimulcastSynthesizer(num_of_layers=1, ssrc_generator=_no_ssrcs)
        assert synthesizer.restore_simulcast(PRIMARY_ONLY) is PRIMARY_ONLY
        assert len(synthesizer.cache) == 0

    def test_new_primary_replaces_cache(self):
        """A different primary SSRC generates a fresh layer set."""
        synthesizer = LocalSimulcastSynthesizer(ssrc_generator=_sequence(1, 2, 3, 4))
        synthesizer.restore_simulcast(PRIMARY_ONLY)
        other = MediaDescription(kind="video", sources=_stream(3000))
        media = synthesizer.restore_simulcast(other)
        assert media.find_group(SIM) == SourceGroup(SIM, (3000, 3, 4))
        assert synthesizer.cache.layers == (3000, 3, 4)


class TestRestoreLayers:
    def test_restore_is_stable(self):
        """Renegotiating the same primary restores identical layers."""
        synthesizer = LocalSimulcastSynthesizer(ssrc_generator=_sequence(1, 2))
        first = synthesizer.restore_simulcast(PRIMARY_ONLY)

        synthesizer._generate_ssrc = _no_ssrcs
        second = synthesizer.restore_simulcast(PRIMARY_ONLY)

        assert second == first
        assert synthesizer.cache.layers == (1000, 1, 2)

    def test_restore_with_rtx_is_stable(self):
        """Restored layers keep their RTX SSRCs."""
        synthesizer = LocalSimulcastSynthesizer(ssrc_generator=_sequence(1, 2, 11, 12))
        first = synthesizer.restore_simulcast(PRIMARY_WITH_RTX)

        synthesizer._generate_ssrc = _no_ssrcs
        second = synthesizer.restore_simulcast(PRIMARY_WITH_RTX)

        assert second.groups == first.groups
        assert set(second.ssrcs) == set(first.ssrcs)

    def test_restore_preseeded_cache(self):
        """Layers assigned before the first munge are restored."""
        cache = SsrcCache()
        cache.force_set([1000, 7, 8])
        synthesizer = LocalSimulcastSynthesizer(cache=cache, ssrc_generator=_no_ssrcs)

        media = synthesizer.restore_simulcast(PRIMARY_ONLY)
        assert media.find_group(SIM) == SourceGroup(SIM, (1000, 7, 8))
        assert media.ssrcs == [1000, 7, 8]

    def test_preseeded_cache_without_rtx_generates_rtx(self):
        """Cached layers without a known RTX SSRC get a new one."""
        cache = SsrcCache()
        cache.force_set([1000, 7, 8], rtx={7: 17})
        synthesizer = LocalSimulcastSynthesizer(cache=cache, ssrc_generator=_sequence(18))

        media = synthesizer.restore_simulcast(PRIMARY_WITH_RTX)
        assert SourceGroup(FID, (7, 17)) in media.groups
        assert SourceGroup(FID, (8, 18)) in media.groups
        assert cache.rtx_for(8) == 18

    def test_restored_layers_take_new_identity(self):
        """Restored layers carry the current primary's msid and cname."""
        synthesizer = LocalSimulcastSynthesizer(ssrc_generator=_sequence(1, 2))
        synthesizer.restore_simulcast(PRIMARY_ONLY)

        renamed = replace(PRIMARY_ONLY, sources=_stream(1000, msid="stream2 track2", cname="c2"))
        media = synthesizer.restore_simulcast(renamed)
        assert get_ssrc_attribute(media, 2, "msid") == "stream2 track2"
        assert get_ssrc_attribute(media, 2, "cname") == "c2"

    def test_cache_follows_emitted_layers(self):
        """A shorter cached layer set is not grown back."""
        cache = SsrcCache()
        cache.force_set([1000, 7])
        synthesizer = LocalSimulcastSynthesizer(cache=cache, ssrc_generator=_no_ssrcs)

        media = synthesizer.restore_simulcast(PRIMARY_ONLY)
        assert media.find_group(SIM) == SourceGroup(SIM, (1000, 7))
        assert cache.layers == (1000, 7)

    def test_primary_mapped_to_cached_primary(self):
        """A primary found at a later cache index is replaced index-aligned."""
        cache = SsrcCache()
        cache.force_set([500, 1000, 7])
        synthesizer = LocalSimulcastSynthesizer(cache=cache, ssrc_generator=_sequence(9001, 9007))

        media = synthesizer.restore_simulcast(PRIMARY_WITH_RTX)
        assert media.find_group(SIM) == SourceGroup(SIM, (500, 1000, 7))
        assert media.groups[0] == SourceGroup(FID, (500, 1001))
        assert cache.layers == (500, 1000, 7)


class TestTopologyRejection:
    @pytest.mark.parametrize(
        "media",
        [
            MediaDescription(kind="video"),
            MediaDescription(kind="video", sources=_stream(1000, 1001)),
            MediaDescription(
                kind="video",
                sources=_stream(1000, 1001, 1002),
                groups=(SourceGroup(FID, (1000, 1001)),),
            ),
            MediaDescription(
                kind="video",
                sources=_stream(1000, 1001),
                groups=(SourceGroup(SIM, (1000, 1001)),),
            ),
            MediaDescription(
                kind="video",
                sources=_stream(1000),
                groups=(SourceGroup(SIM, (1000,)),),
            ),
            MediaDescription(
                kind="video",
                sources=_stream(1000, 1001),
                groups=(SourceGroup(FID, (2000, 1001)),),
            ),
        ],
        ids=[
            "no-sources",
            "two-without-fid",
            "three-sources",
            "two-with-sim",
            "already-simulcast",
            "fid-primary-unknown",
        ],
    )
    def test_unsupported_topology_untouched(self, media):
        synthesizer = LocalSimulcastSynthesizer(ssrc_generator=_no_ssrcs)
        assert synthesizer.restore_simulcast(media) is media
        assert len(synthesizer.cache) == 0
