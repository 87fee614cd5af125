import random
import socket

from .config import DEFAULT_CONFIG, NetworkConfig
from .node import OnionRouter
from .registry import Registry
from .user import User


def find_free_port_block(count, host="127.0.0.1", attempts=50):
    """Finds ``count`` consecutive free ports and returns the first one."""
    for _ in range(attempts):
        start = random.randint(20000, 60000 - count)
        sockets = []
        try:
            for port in range(start, start + count):
                s = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
                sockets.append(s)
                s.bind((host, port))
            return start
        except OSError:
            continue
        finally:
            for s in sockets:
                s.close()
    raise OSError(f"No block of {count} free ports found on {host}")


def local_config(nb_nodes, nb_users, host="127.0.0.1"):
    """A NetworkConfig laid out on one block of free ports: registry, relays, users."""
    start = find_free_port_block(1 + nb_nodes + nb_users, host)
    return NetworkConfig(host=host, registry_port=start, base_onion_router_port=start + 1,
                         base_user_port=start + 1 + nb_nodes)


class Network:
    def __init__(self, config, registry, routers, users):
        self.config = config
        self.registry = registry
        self.routers = routers
        self.users = users

    def router(self, node_id):
        return self.routers[node_id]

    def user(self, user_id):
        return self.users[user_id]

    def stop(self):
        for node in [*self.users, *self.routers, self.registry]:
            node.stop()


def launch_network(nb_nodes, nb_users, config=DEFAULT_CONFIG):
    """Starts a registry, ``nb_nodes`` onion routers and ``nb_users`` users."""
    started = []
    try:
        registry = Registry(config)
        registry.start()
        started.append(registry)

        routers = []
        for node_id in range(nb_nodes):
            router = OnionRouter(node_id, config)
            router.start()
            started.append(router)
            routers.append(router)

        users = []
        for user_id in range(nb_users):
            user = User(user_id, config)
            user.start()
            started.append(user)
            users.append(user)
    except Exception:
        for node in reversed(started):
            node.stop()
        raise
    return Network(config, registry, routers, users)
