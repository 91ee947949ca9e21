"""
Storage backends for repository synchronization
"""

from .storage_sync import StorageSync, BACKENDS

__all__ = ['StorageSync', 'BACKENDS']
