# locengine

Building blocks for a GPS location engine. The package is pure Python and
has no third-party dependencies. It needs a POSIX system for the named-pipe
and `fcntl` helpers.

## Modules

- **`locengine.nmea`** holds the shared types: `Location`,
  `LocationExtended`, `LocationFlags`, `ExtendedFlags`, `PositionMode`,
  `SvInfo` and `SvStatus`.
  - `put_checksum(body)` appends `*XX\r\n` to a sentence that starts with
    `$`.
  - `generate_sv(state, sv_status, location_extended)` sends `$GPGSV` and
    `$GLGSV` sentences. A sentence carries at most four satellites. GPS
    covers PRNs 1–32 and GLONASS covers PRNs 65–96.
  - When no satellite is used in the fix, `generate_sv` also sends blank
    `$GPGSA`, `$GPVTG`, `$GPRMC` and `$GPGGA` sentences. Otherwise it caches
    the used-satellite mask and the DOP values in the `NmeaState`.
  - `NmeaState.send` passes every finished sentence to
    `nmea_cb(timestamp_ms, sentence, length)`.
- **`locengine.nmea_position`** provides
  `generate_pos(state, location, location_extended, generate_nmea)`. It
  sends `$GPGSA`, `$GPVTG`, `$GPRMC` and `$GPGGA` built from a position
  report. When `generate_nmea` is false it sends blank sentences instead.
  Afterwards it clears the cached DOP values. A sentence that would grow
  too long raises `ValueError`.
- **`locengine.clock`** provides `system_time(clock)`, which returns
  wall-clock microseconds, and `elapsed_millis_since_boot()`, which returns
  wall-clock milliseconds.
- **`locengine.pipe`** holds the named-pipe helpers.
  - `pipe_get` creates the FIFO with mode `0o660` and opens it.
  - `pipe_read`, `pipe_write`, `pipe_remove` and `pipe_unblock` do the
    rest.
  - Failures raise `OSError`.
- **`locengine.message`** holds the daemon control messages.
  - `CtrlMessage` and `IfRequest` have a fixed native binary layout, with
    `pack()` and `CtrlMessage.unpack()`.
  - The enums are `CtrlType`, `ResponseResult`, `IfRequestType` and
    `IfRequestSenderId`.
  - The framing functions over pipes are `msg_get`, `msg_remove`,
    `msg_send`, `msg_receive`, `msg_flush` and `msg_unblock`.
  - A short read or write raises `BrokenPipeError`.
- **`locengine.handler`** turns interface requests into engine requests.
  - `handle_if_request(message, send)` and `handle_if_release(message, send)`
    build a `WifiRequest` or a `BitRequest`, each tagged with an `AgpsType`.
  - The request is passed to `send` and also returned.
  - A missing `send` raises `RuntimeError`. An unknown request type or
    sender raises `ValueError`.
- **`locengine.xtra`** provides `XtraModule(adapter, post)`.
  - `init(callbacks)` stores the callbacks from an `XtraCallbacks`.
  - `inject_data(data)` hands a copy of XTRA data to
    `adapter.set_xtra_data`.
  - `request_server()` calls `adapter.request_xtra_server`.
  - Both go through `post`. By default `post` runs the work at once.
- **`locengine.thread_helper`** provides `ThreadHelper`, which runs a
  worker thread through init, pre, loop and post steps.
  - A step fails when it raises or returns a negative number.
  - `launch` waits for the init step to finish. It raises `RuntimeError`
    if the thread exited during start-up.
  - `unblock` stops the loop and `join` waits for the thread.
  - `signal_wait`, `signal_ready` and `signal_block` expose the ready
    signal.
- **`locengine.ni`** provides `NiManager`, which tracks one ordinary and one
  emergency network-initiated session.
  - `init(notify_cb)` sets the notification callback.
  - `request(notification, pass_through)` starts a session and returns its
    id. It returns `None` when a session already in progress blocks the
    request.
  - `respond(notif_id, user_response)` answers a session.
  - `reset_on_engine_restart()` drops pending sessions.
  - A session that gets no answer replies `UserResponse.NORESP` after its
    timeout plus a grace period.
  - Each answer is passed to `send_response(response, pass_through)`.

## Example

```python
from locengine.nmea import LocationExtended, NmeaState, SvInfo, SvStatus, generate_sv

sentences = []
state = NmeaState(nmea_cb=lambda timestamp_ms, sentence, length: sentences.append(sentence))
status = SvStatus(
    sv_list=[SvInfo(prn=5, snr=40.0, elevation=45.0, azimuth=120.0)],
    used_in_fix_mask=1 << 4,
)
generate_sv(state, status, LocationExtended())
print(sentences[0])  # the $GPGSV sentence for satellite 05
```

## What it does not do

The package has no command-line program and no daemon or server loop. It
does not talk to a GPS chip or modem itself. The engine side must be
supplied by the caller:

- the NMEA callback;
- the `send` callable for interface requests;
- the XTRA adapter;
- the NI `send_response` and `mute_session` callables.

## Tests

```
pip install -e .[test]
pytest
```