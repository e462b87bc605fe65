# primedist

Search for prime numbers across several machines. One process runs as the
**master**: it listens on a TCP port, accepts any number of **slaves**, splits
a number range between them and collects every prime they report. Each slave
splits its share again between worker threads and streams primes back to the
master as it finds them.

## Installing

```
pip install .
```

For running the tests:

```
pip install ".[test]"
pytest
```

## Running

The package installs one command, `primedist`:

```
primedist --help
primedist master --port 12345
primedist slave --host 127.0.0.1 --port 12345 --threads 4
```

With no mode given, `primedist` runs as master. Options:

| Mode   | Option      | Default          | Meaning                         |
|--------|-------------|------------------|---------------------------------|
| master | `--port`    | 12345            | port to listen on               |
| slave  | `--host`    | 127.0.0.1        | address of the master           |
| slave  | `--port`    | 12345            | port of the master              |
| slave  | `--threads` | number of CPUs   | worker threads (at least 1)     |

The master starts listening right away; if the port cannot be opened it prints
the error and still accepts commands. The slave connects right away and exits
with status 1 if the connection fails. Both then read commands from standard
input, one per line, until `quit`, `exit` or the end of input. Log lines are
printed with a `[HH:MM:SS]` timestamp; errors go to standard error.

Master commands:

```
start [PORT]            start listening (default: the --port value)
stop                    disconnect all slaves and stop listening
status                  show whether the server is running
clients                 list connected slaves
distribute [START END]  split the range between the connected slaves
                        (default: the last range, initially 1 to 1000000)
count                   show how many primes were found
primes                  print the primes found
sort                    toggle descending/ascending order of the primes
verify                  compare the prime count with x / ln(x)
help                    list the commands
quit                    stop the server and exit
```

Slave commands:

```
connect [HOST [PORT]]   connect to a master
disconnect              stop calculating and close the connection
status                  show connection, progress and prime count
wait [SECONDS]          wait for the running calculation to finish
help                    list the commands
quit                    disconnect and exit
```

A typical session is one master and one slave per machine: start the master,
start the slaves pointing at it, type `distribute 1 1000000` on the master,
and once every slave has reported that it finished, type `count`, `verify` or
`sort`.

## How work is divided

A range `[start, end]` is cut into equal parts of `(end - start + 1) // n`
numbers; the last part runs to `end` and takes whatever is left over. The
master divides the range this way between its connected slaves, and each slave
divides its own range the same way between its worker threads. On the master
the start of the range must be less than its end.

`primedist.primes.split_range(start, end, parts)` does this split, and
`primedist.primes.is_prime(n, stop_event, on_progress)` is the trial-division
test (by 2, 3 and then numbers of the form 6k ± 1) that every worker runs.
Setting the stop event ends a search early. `PrimeTask(start, end, ...)`
scans one range and reports each prime, its progress and its finish through
callbacks.

```python
import threading

from primedist.primes import is_prime, split_range

stop = threading.Event()
print(is_prime(97, stop, lambda percent: None))   # True
print(split_range(1, 10, 3))                      # [(1, 3), (4, 6), (7, 10)]
```

## Using it from Python

`primedist.master.MasterServer(on_log=None, on_prime=None)` is the master.
`start(port)` listens on all interfaces (port 0 picks a free one, readable
afterwards as `port`), `stop()` disconnects everyone, `clients` lists the
connected slave addresses and `primes` holds the primes received.
`distribute(start, end)` sends each slave its part and returns
`(address, part_start, part_end)` for each; it raises `RuntimeError` when no
slave is connected and `ValueError` for a bad range. `toggle_sort()` flips the
order of `primes` (the first call sorts descending) and `verify()` returns a
`VerificationResult` with `found`, `approximation`, `difference` and a
printable `message`. The server is a context manager that stops on exit.

`primedist.slave.SlaveClient(thread_count=None, on_log=None)` is the slave.
`connect(host, port)` opens the connection and handles incoming tasks in the
background; `start_calculation(start, end)` can also be called directly;
`wait(timeout)` returns True once all submitted tasks have finished;
`primes`, `progress` and `connected` show its state; `disconnect()` stops the
search and `close()` (also run on leaving a `with` block) waits for the
workers as well.

## Verification

`verify` compares the number of primes found with the estimate from the prime
number theorem, π(x) ≈ x / ln x, taken as π(end) − π(start − 1), and reports
the difference in percent. `primedist.master.prime_count_approximation(x)`
gives that estimate on its own (0 for x below 2).

## Wire protocol

Messages are a one-byte opcode followed by big-endian unsigned integers.

| Direction       | Opcode | Payload                  | Meaning                    |
|-----------------|--------|--------------------------|----------------------------|
| master → slave  | 1      | start (u64), end (u64)   | search this range          |
| master → slave  | 2      | none                     | stop the current search    |
| slave → master  | 1      | prime (u64)              | a prime was found          |
| slave → master  | 2      | count (u32)              | a worker finished its part |

`primedist.protocol` holds the message types (`TaskMessage`, `StopMessage`,
`PrimeMessage`, `FinishedMessage`), `encode(message)` to turn one into bytes,
and the incremental decoders `MasterMessageDecoder` and `SlaveMessageDecoder`,
whose `feed(data)` accepts bytes as they arrive from a socket and returns the
complete messages received so far. Unknown opcodes are skipped.

## What it does not do

There is no graphical window: both modes are driven by text commands. Primes
are kept in memory only and are not saved anywhere. If a slave disconnects
during a search, its part of the range is not handed to another slave, and the
master never sends the stop message on its own.