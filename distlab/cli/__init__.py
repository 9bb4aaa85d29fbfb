"""Namespace for command-line tools; no commands are included."""