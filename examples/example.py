#!/usr/bin/env python

import asyncio
from pprint import pprint

from know_your_route import (
    Hop,
    TraceOrchestrator,
    extract_hostname,
    load_config,
    trace,
)


async def stream_route(orchestrator: TraceOrchestrator, target: str) -> None:
    async for event in orchestrator.stream(target):
        if isinstance(event, Hop):
            print(event.to_event())
        else:
            pprint(event.to_event())


if __name__ == "__main__":
    # load configuration from file (default: './know_your_route.toml')
    config = load_config()

    # target host, reduced from a manifest URL
    target = extract_hostname("https://dash.akamaized.net/envivio/EnvivioDash3/manifest.mpd")

    # blocking trace
    print("Trace...")
    result = trace(config, target)
    pprint(result.to_event())

    # streaming trace, hops printed as they are discovered
    print("Streaming trace...")
    asyncio.run(stream_route(TraceOrchestrator(config.traceroute), target))
