"""
KTV Request Hub - song requests, live queue and rankings for a residential KTV room.
"""
