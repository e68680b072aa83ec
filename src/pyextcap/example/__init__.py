"""Example extcap program built on pyextcap (console script `pyextcap-example`)."""
