"""PassKit backend: issues and maintains signed Apple Wallet passes."""
