"""

palmchord makes an instrument of your right hand: move it over a hand tracker
(or in front of a webcam) and it plays chords on a MIDI synth.

The mapping is the following:

* left to right (x) picks the root of the chord, snapped to a scale (F# minor,
    three octaves, by default). The chord stacks the root with the 3rd, 5th and
    7th degrees above it.
* height (y) gives the velocity. Louder notes are shorter: from 5 seconds at
    velocity 0 down to 100 ms at velocity 127.
* depth (z) gives the modulation.
* tilting the hand sideways plays faster: a flat hand waits 800 ms between
    chords, a hand on its side only 100 ms.
* pinching (thumb to index) switches to the next instrument.

A chord is only played when the hand moves, and every note is given a note-off
when its time is up, so nothing is left hanging.

Here's a bit about what's where:

* pipeline.py: `PalmChordPipeline`, which puts everything together. Feed it
    samples with `step`, or give it a source to `run`.
* smoothing.py, scales.py, scheduler.py, gestures.py: the pieces of the pipeline.
* midi.py: MIDI messages and sinks (`mido` ports, or a recorder for dry runs).
* sources.py, hand_features.py: where samples come from (recordings, synthetic
    sweeps, a webcam).
* script_utils.py: `run_palmchord` and the command line interface.

Try `palmchord --source sweep --dry-run --no-pointer` to see what it does without
any hardware.

"""
