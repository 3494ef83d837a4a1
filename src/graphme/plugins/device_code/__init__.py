"""Device-code sign-in strategy (:rfc:`8628`).

Implements the ``device_code`` strategy, designed for headless or
browserless terminals. The user is shown a URL and a short code to enter
on another device while the CLI polls for completion.

See Also:
    :class:`~graphme.plugins.device_code.plugin.DeviceCodeStrategy`
"""

from graphme.plugins.device_code.plugin import DeviceCodeStrategy

__all__ = ["DeviceCodeStrategy"]
