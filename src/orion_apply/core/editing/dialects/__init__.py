"""
Edit dialect parsers.

udiff and search_replace classify every edit into outcomes; whole_file and
xml_changes write files directly and report nothing back.
"""
