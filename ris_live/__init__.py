"""
RIS Live - streaming client and filter for the RIPE RIS Live BGP firehose.

Provides:
- Streaming decode of RIS Live JSON records from HTTP or a local file
- AS path digestion with one-level AS-set flattening
- AS path fragment, invalid transit AS, origin and prefix filters
- A bounded output queue with producer backpressure
"""

__version__ = "0.1.0"
__author__ = "BGP Toolkit Project"
