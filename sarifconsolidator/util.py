STATUS_FAILURE = 1
STATUS_KEYBOARD_INTERRUPT = 130
