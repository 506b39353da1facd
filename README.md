# actorctx

The execution context that drives an actor. It tracks the actor's lifecycle,
holds the futures spawned for the actor, stops message handling while a
"wait" future is pending, handles cancellation, and runs the cooperative
poll loop that moves everything forward.

Everything lives in `actorctx.context`.

## Installation

```
pip install actorctx
```

To run the tests:

```
pip install "actorctx[test]"
pytest
```

## Actor futures

An actor future is one of two things:

- a generator: each `next()` that yields means "still pending", and running
  out means "done";
- a callable `fut(actor, ctx)` that returns a true value once it is complete.

## Actors

An actor is any object. It may define these hooks. Each one is called with
the context object that was handed to `ContextFut`:

- `started(ctx)`
- `stopping(ctx)`, which returns a `Running` value. If the hook is missing,
  the answer is `Running.STOP`.
- `stopped(ctx)`
- `restarting(ctx)`

A missing hook is skipped. The context object must be a `ContextParts`, or
it must expose one as its `parts` attribute.

## Collaborators you supply

`ContextParts(addr)` takes an address producer. It needs these methods:
`capacity()`, `set_capacity(cap)`, `sender()` and `connected()`.

`ContextFut(ctx, act, mailbox)` takes a mailbox. It needs these methods:
`poll(actor, ctx)`, `connected()` and `address()`.

## Classes

- `ContextFlags` holds the state bits: `STARTED`, `RUNNING`, `STOPPING`,
  `STOPPED` and `MB_CAP_CHANGED`.
- `ActorState` is the value returned by `ContextParts.state()`: `STARTED`,
  `RUNNING`, `STOPPING` or `STOPPED`.
- `Running` is the answer of the `stopping` hook: `STOP` or `CONTINUE`.
- `SpawnHandle` is a frozen, ordered identifier with an integer `value`.
  `next()` returns the following handle, and `int(handle)` gives the value.
- `ContextParts` is the side of the context that an actor talks to.
  - `spawn(fut)` adds a future and returns its handle.
  - `wait(fut)` adds a future that must finish before further work runs.
  - `cancel_future(handle)` schedules a spawned future for removal and
    always returns `True`.
  - `stop()` begins stopping and `terminate()` marks the context stopped.
  - `restart()` drops all futures and returns to running.
  - `state()`, `waiting()`, `started()`, `connected()` and `curr_handle()`
    report on the context.
  - `capacity()`, `set_mailbox_capacity(cap)` and `address()` pass through
    to the address producer.
- `ContextFut` owns the actor, the context and the mailbox.
  - `poll()` runs the actor as far as it can go. It returns `True` once the
    actor has stopped.
  - `alive()` tells whether the actor still has a reason to run.
  - `restart()` clears all futures and calls `restarting`, but only while
    the mailbox is connected. It returns whether it did so.
  - `close()` stops a still-alive actor and polls it one last time. It also
    runs on leaving a `with ContextFut(...)` block.
  - `ctx()` and `address()` return the context and the mailbox's address.

## Lifecycle

1. A new context is running but has not started.
2. The first `poll()` marks it started and calls `started`.
3. `stop()` moves a running context to stopping. If `stopping` answers
   `Running.CONTINUE`, the context goes back to running.
4. A running actor that is no longer alive is asked `stopping`. Being
   alive means it has connected senders, spawned futures or wait futures.
   On `Running.STOP` the context is marked stopped and `stopped` is called.
5. `terminate()` goes straight to stopped.

The most recently added wait future is always polled first. Spawned futures
are polled in order. A spawned future that schedules a wait is moved to the
back of the queue, so it cannot starve the others.

## What this package does not provide

This package has no event loop, no timers, no mailbox or address
implementation, and no message or handler types. It drives an actor only
when you call `poll()`, using the collaborators you supply.