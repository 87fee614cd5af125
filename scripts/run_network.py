import sys
import time

from onion_router.config import DEFAULT_CONFIG
from onion_router.errors import OnionError
from onion_router.network import launch_network


def get_int_input(prompt, min_val=None, max_val=None):
    """Gets and validates integer input from the user."""
    while True:
        try:
            value = int(input(prompt).strip())
            if min_val is not None and value < min_val:
                print(f"  Error: Value must be at least {min_val}.")
            elif max_val is not None and value > max_val:
                print(f"  Error: Value must be no more than {max_val}.")
            else:
                return value
        except ValueError:
            print("  Error: Please enter a valid integer.")


def display_network(network):
    """Displays the relays and users that are running."""
    print("\nOnion routers:")
    for router in network.routers:
        print(f"  [{router.node_id}] {router.address}")
    print("Users:")
    for user in network.users:
        print(f"  [{user.user_id}] {user.address}")


def main():
    """Launches a network and sends messages through it until interrupted."""
    print("--- Onion Router Network ---")
    print(f"Using {DEFAULT_CONFIG}")

    nb_nodes = get_int_input("How many onion routers to start (at least 3)? ", min_val=3)
    nb_users = get_int_input("How many users to start? ", min_val=1)

    try:
        network = launch_network(nb_nodes, nb_users, DEFAULT_CONFIG)
    except (OSError, OnionError) as e:
        print(f"Error starting the network: {e}")
        sys.exit(1)

    display_network(network)
    print("\nSend a message as '<sender> <destination> <message>'. Press Ctrl+C to exit.")
    try:
        while True:
            line = input("> ").strip()
            parts = line.split(" ", 2)
            if len(parts) != 3 or not parts[0].isdigit() or not parts[1].isdigit():
                print("  Error: expected '<sender> <destination> <message>'.")
                continue
            sender_id, destination_id, message = int(parts[0]), int(parts[1]), parts[2]
            if sender_id >= nb_users or destination_id >= nb_users:
                print(f"  Error: user ids go from 0 to {nb_users - 1}.")
                continue

            sender = network.user(sender_id)
            try:
                sender.send_message(message, destination_id)
            except OnionError as e:
                print(f"  FAILURE: {type(e).__name__} - {e}")
                continue
            print(f"  Circuit: {' -> '.join(str(i) for i in sender.last_circuit)} -> user {destination_id}")

            # Delivery is asynchronous, give the relays a moment
            time.sleep(0.5)
            received = network.user(destination_id).last_received_message
            print(f"  User {destination_id} last received: {received!r}")
    except (KeyboardInterrupt, EOFError):
        print("\nExiting...")
    finally:
        network.stop()


if __name__ == "__main__":
    main()
