"""
Plugin Mitigator
================

Signature-based detector and neutralizer for known malicious WordPress
plugins:
- Multi-signature file matching
- Cascading neutralization (file, plugin directory, family variants)
- Cooldown-throttled passes on admin requests
- Plugin list visibility enforcement
"""

__version__ = "0.3.0"
__author__ = "MSP WebOps"
