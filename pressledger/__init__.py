"""PressLedger: newspaper distribution ledger for a four-tier supply hierarchy."""
