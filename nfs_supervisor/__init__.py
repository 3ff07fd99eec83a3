"""nfs-supervisor: runs rpcbind, dbus and nfs-ganesha in one container."""
