"""
Core update engine.

This package contains the pipeline logic. `UpdateSession` is the worker that
reads the manifest, waits out the grace period and hands off to the
`Downloader` and the `ApplyEngine`; `UpdateMonitor` observes it and relays
cancellation through a `CancelToken`.
"""
