"""
Ledger Modules.

Document lifecycles built on the kernel and engines:

- variations: Variation order drafting, approval and BOQ register updates
- billing: Interim Payment Certificates and subcontractor bills

Each module carries its own workflows and a service over the project store.
"""
