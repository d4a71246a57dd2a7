"""Subscriber side of PerfHub: transport strategies and the transport selector."""
