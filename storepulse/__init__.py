"""StorePulse: embedded storefront insights dashboard."""
