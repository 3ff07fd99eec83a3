"""Administrative access to nfs-ganesha over the system bus.

Heartbeats provide readiness status; the ClientMgr and ExportMgr objects
provide I/O statistics for metrics.
"""
