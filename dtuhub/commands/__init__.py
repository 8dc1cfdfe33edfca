"""Request frames sent to Hoymiles inverters and their response handling."""