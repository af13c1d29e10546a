#
# Copyright (c) 2024-2025, Daily
#
# SPDX-License-Identifier: BSD 2-Clause License
#

"""Simulcast Munging Example

Munges a local offer twice, as happens across a mute/unmute cycle, and shows
that the generated simulcast layers are reused. Then normalizes a remote
answer that carries simulcast layers.

Requirements:
    pip install -e .

Environment variables:
    SIMULCAST_LAYERS: Number of layers to offer (default: 3)
    EXPLODE_REMOTE: Set to 1 to explode remote simulcast (default: 0)
"""

import logging
import os

from sdp_simulcast import SessionDescription, Simulcast, SimulcastParams

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

LOCAL_OFFER = (
    "v=0\r\n"
    "o=- 4962303333179871722 2 IN IP4 127.0.0.1\r\n"
    "s=-\r\n"
    "t=0 0\r\n"
    "m=video 9 UDP/TLS/RTP/SAVPF 100 96\r\n"
    "c=IN IP4 0.0.0.0\r\n"
    "a=mid:video\r\n"
    "a=sendrecv\r\n"
    "a=rtpmap:100 VP8/90000\r\n"
    "a=rtpmap:96 rtx/90000\r\n"
    "a=fmtp:96 apt=100\r\n"
    "a=ssrc-group:FID 1000 1001\r\n"
    "a=ssrc:1000 cname:local-cname\r\n"
    "a=ssrc:1000 msid:stream video-track\r\n"
    "a=ssrc:1001 cname:local-cname\r\n"
    "a=ssrc:1001 msid:stream video-track\r\n"
)

REMOTE_ANSWER = (
    "v=0\r\n"
    "o=- 1 2 IN IP4 127.0.0.1\r\n"
    "s=-\r\n"
    "t=0 0\r\n"
    "m=video 9 UDP/TLS/RTP/SAVPF 100\r\n"
    "c=IN IP4 0.0.0.0\r\n"
    "a=mid:video\r\n"
    "a=sendrecv\r\n"
    "a=rtpmap:100 VP8/90000\r\n"
    "a=ssrc-group:SIM 1 2 3\r\n"
    "a=ssrc:1 cname:remote\r\n"
    "a=ssrc:1 msid:remote-stream remote-track\r\n"
    "a=ssrc:2 cname:remote\r\n"
    "a=ssrc:2 msid:remote-stream remote-track\r\n"
    "a=ssrc:3 cname:remote\r\n"
    "a=ssrc:3 msid:remote-stream remote-track\r\n"
)


def main():
    params = SimulcastParams(
        num_of_layers=int(os.getenv("SIMULCAST_LAYERS", "3")),
        explode_remote_simulcast=os.getenv("EXPLODE_REMOTE", "0") == "1",
    )
    simulcast = Simulcast(params)

    offer = SessionDescription(type="offer", sdp=LOCAL_OFFER)
    first = simulcast.munge_local_description(offer)
    logger.info("Local offer:\n%s", first.sdp)

    # Unmuting renegotiates with the bare primary source again.
    second = simulcast.munge_local_description(offer)
    logger.info("Layers reused after renegotiation: %s", first.sdp == second.sdp)
    logger.info("Cached layers: %s", simulcast.ssrc_cache)

    answer = simulcast.munge_remote_description(
        SessionDescription(type="answer", sdp=REMOTE_ANSWER)
    )
    logger.info("Remote answer:\n%s", answer.sdp)


if __name__ == "__main__":
    main()
