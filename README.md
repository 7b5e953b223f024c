# treasurenet

treasurenet is a treasure hunt for two players, played across a local
network link. The two sides talk directly in raw Ethernet frames that carry a
custom EtherType (`0x88B5`). No IP stack is involved.

* The **server** keeps an 8×8 grid on which treasures are hidden. Each
  treasure is a file from the `./objetos/` directory. The regular files in
  that directory are sorted by name, and the first eight are placed on
  distinct random cells.
* The **client** steers the player around the grid. When the player steps
  onto a treasure, the server sends that file to the client. The client
  writes the file into `./tesouros/`, replacing any file of the same name.

Messages travel in small framed packets, made of:

1. a start mark (`0x7E`),
2. a 7-bit size,
3. a 5-bit sequence number,
4. a 4-bit type,
5. a one-byte checksum,
6. up to 127 bytes of data.

A stop-and-wait controller acknowledges each packet and sends it again after
a NACK or a timeout.

## Requirements

* Linux. The package needs `AF_PACKET` raw sockets.
* The right to open raw sockets: either root, or the `CAP_NET_RAW`
  capability.
* A terminal that curses can drive.
* On the server:
  * the `file` utility, which is used to tell text, image and video
    treasures apart;
  * a `./objetos/` directory that holds at least eight regular files.
* On the client, an existing `./tesouros/` directory.

The package has no third-party runtime dependencies.

## Playing

Start the server on one machine. Give it the name of the network interface
to use:

    treasurenet-server eth0

Start the client on the other machine in the same way:

    treasurenet-client eth0

Both commands accept an optional second argument: a file to which their
diagnostic output is appended. If you leave it out, that output is
discarded.

    treasurenet-server eth0 server.log
    treasurenet-client eth0 client.log

At startup, each side first reads its own MAC address. It then broadcasts a
probe and waits for a frame of the custom EtherType. The sender of that frame
becomes its peer.

### Client controls

| Key            | Action     |
|----------------|------------|
| `i` / ↑        | Move up    |
| `k` / ↓        | Move down  |
| `j` / ←        | Move left  |
| `l` / →        | Move right |
| `q`            | Quit       |

The client screen shows three things:

* the list of commands;
* the last movement;
* a status line.

The status line reports timeouts and the progress of incoming files.

### Server screen

The server screen shows:

* the grid, where the player is drawn as `[P]` and each remaining treasure
  as `T`;
* the player's last ten positions;
* a message line.

Movement wraps around the edges of the grid. A treasure is removed once its
file has been sent successfully.

When the server reports an error during a transfer, the client's status line
shows one of these reasons:

* "Access denied";
* "Insufficient storage or quota";
* "Generic error".

## Using the pieces

Each layer can also be used on its own. For example, the checksum strategy
returns the byte which, added to the data, makes the byte sum zero
modulo 256:

```python
from treasurenet.checksum import ChecksumStrategy

strategy = ChecksumStrategy()
data = bytes([0x01, 0x02, 0x03, 0x04])
check = strategy.generate(data)         # 0xF6
strategy.verify(data + bytes([check]))  # True
```

Packet headers pack into three bytes and unpack from them:

```python
from treasurenet.packets import PacketHeader, PacketType

header = PacketHeader(size=5, seq_num=17, type=PacketType.DATA, checksum=0xAB)
PacketHeader.from_bytes(header.to_bytes()) == header  # True
```

| Module                      | Role                                                        |
|-----------------------------|-------------------------------------------------------------|
| `treasurenet.packets`       | Packet, error and file types; the packet header layout      |
| `treasurenet.checksum`      | The checksum error-control strategy                         |
| `treasurenet.rawsocket`     | Raw packet sockets, Ethernet headers and MAC discovery      |
| `treasurenet.datatransfer`  | Sending and receiving payloads to and from the peer         |
| `treasurenet.stopandwait`   | The stop-and-wait flow controller                           |
| `treasurenet.kermit`        | Messages and file transfer                                  |
| `treasurenet.grid`          | Grid size, directions and key/movement-byte mappings        |
| `treasurenet.observer`      | `DataObserver`, a single-slot observable value              |
| `treasurenet.logredirect`   | `OutputRedirect`, which sends stdout and stderr into a file |
| `treasurenet.client`        | The client controller and the `treasurenet-client` command  |
| `treasurenet.server`        | The server controller, game state and `treasurenet-server`  |

## Running the tests

Install the `test` extra, then run `pytest` from the project root.