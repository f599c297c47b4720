"""Built-in CLI sub-commands for fetchcache.

* :mod:`~fetchcache.commands.caches` -- ``list``, ``keys``, ``match``,
  ``add`` and ``delete``, registered directly on the root app.
* :mod:`~fetchcache.commands.config` -- the ``config`` group for viewing
  and modifying global settings.
"""
